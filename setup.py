"""
Setup script for lingoloop.

lingoloop is the adaptive session loop of a language-learning product:

1. Onboarding - answers become versioned personalization signals
2. Sessions - lesson and review plans run card by card
3. Review engine - resolved cards schedule their next review

The 'lingoloop' command is the terminal driver for the loop.
"""

from setuptools import find_packages, setup

setup(
    name="lingoloop",
    version="0.1.0",
    description="Adaptive lesson and spaced-repetition review loop for language learning",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["lingoloop", "lingoloop.*"]),
    py_modules=["config"],
    package_data={"lingoloop": ["lessons/*.json"]},
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "lingoloop=lingoloop.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="language-learning spaced-repetition onboarding cli education",
)
