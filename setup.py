"""Setup configuration for personal-server CLI."""

import os
import re

from setuptools import find_packages, setup

here = os.path.abspath(os.path.dirname(__file__))

# Get version from package without importing it
with open(os.path.join(here, "personal_server", "__init__.py"), encoding="utf-8") as f:
    init_source = f.read()
__version__ = re.search(r'^__version__ = "([^"]+)"', init_source, re.M).group(1)
__author__ = re.search(r'^__author__ = "([^"]+)"', init_source, re.M).group(1)

# Get the long description from the README file
with open(os.path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="personal-server-cli",
    version=__version__,
    description="Backup, restore and scheduling tool for a personal Kubernetes server",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author=__author__,
    keywords="kubernetes backup webdav gpg cron cli",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        "click>=8.0.0",
        "pyyaml>=6.0",
        "jinja2>=3.0.0",
        "jsonschema>=4.0.0",
        "requests>=2.28.0",
        "kubernetes>=26.1.0",
        "sentry-sdk>=1.40.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.12.0",
            "mypy>=0.991",
        ],
    },
    entry_points={
        "console_scripts": [
            "personal-server=personal_server.cli:cli",
        ],
    },
)
