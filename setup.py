#!/usr/bin/env python3

from setuptools import setup, find_packages

setup(
    name="gaspack",
    version="0.1.0",
    description="Build a browser UI and a server script into a flat Google Apps Script deployment",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "json5",
    ],
    extras_require={
        "dev": ["pytest", "black", "mypy"],
    },
    entry_points={
        "console_scripts": [
            "gaspack=gaspack.cli:main",
        ],
    },
)
