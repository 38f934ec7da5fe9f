"""
lingoloop: adaptive session-generation loop for language learning.

Onboarding answers become personalization signals, signals and the due set
become session plans, runners record attempts, and resolved cards feed the
spaced repetition scheduler.
"""

__version__ = "0.1.0"
