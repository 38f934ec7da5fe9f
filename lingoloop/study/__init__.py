"""
Study: the closed learning loop behind the CLI.
"""

from .service import StudyService

__all__ = ["StudyService"]
