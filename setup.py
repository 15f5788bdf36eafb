"""
dashnotify setup.py — Package configuration and CLI entry point.
"""

from setuptools import find_packages, setup

setup(
    name="dashnotify",
    version="0.1.0",
    description="dashnotify — Notifications as Grafana dashboard annotations",
    packages=find_packages(include=["dashnotify", "dashnotify.*"]),
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "dashnotify=dashnotify.cli:main",
        ],
    },
    install_requires=[
        "httpx>=0.27",
        "pydantic>=2.5",
        "pyyaml>=6.0",
        "google-auth>=2.20",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
        ],
    },
)
