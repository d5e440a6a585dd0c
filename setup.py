"""
Setup script for perspective-engine.

Perspective Engine is the personalization core of a critical-thinking
practice platform. It serves two roles:

1. Adaptive Challenge Selection - Picks the next challenge from a user's
   recent performance, weaknesses and bias exposure
2. Echo Score - Scores diverse-perspective consumption and cognitive
   flexibility, with history and trends

The 'perspective' command exposes both from the terminal.
"""

from setuptools import find_packages, setup

setup(
    name="perspective-engine",
    version="1.0.0",
    description="Adaptive challenge selection and Echo Score engine",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["perspective", "perspective.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        "psycopg2-binary>=2.9.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "perspective=perspective.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
    ],
    keywords="personalization adaptive-learning media-literacy scoring",
)
