#!/usr/bin/env python3
"""Setup script for the Pyright WebSocket Bridge package."""

import sys

from setuptools import find_packages, setup

# Read version from the package
with open("pyrightbridge/__init__.py") as f:
    for line in f:
        if line.startswith("__version__"):
            version = line.split("=")[1].strip().strip('"').strip("'")
            break
    else:
        version = "0.0.0"

# Read long description from README
with open("README.md") as f:
    long_description = f.read()

# Display warning about external dependencies
print("""
NOTE: The pyright package downloads the Pyright language server (a Node.js
program) on first use. Node.js must be available, or pyright will fetch it.

Please refer to the README.md for complete installation instructions.
""", file=sys.stderr)

setup(
    name="pyrightbridge",
    version=version,
    description="WebSocket bridge giving each client its own Pyright language server",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pyright>=1.1.316",
        "ruff>=0.14.0",
        "websockets>=14.0",
        "pydantic>=2.0.0",
        "click>=8.1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "pyrightbridge=pyrightbridge.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
)
