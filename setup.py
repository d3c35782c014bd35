"""
Setup script for repo-upsert.

repo-upsert synchronizes local files into a GitHub repository as a single
atomic commit built through the Git data API.

Installation:
    pip install -e .            # runtime
    pip install -e ".[test]"    # with test dependencies
"""

from pathlib import Path

from setuptools import find_packages, setup

README = Path(__file__).parent / "README.md"

setup(
    name="repo-upsert",
    version="0.1.0",
    description="Upsert a batch of local files into a GitHub repository as one commit",
    long_description=README.read_text(encoding="utf-8") if README.exists() else "",
    long_description_content_type="text/markdown",
    python_requires=">=3.9",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "httpx>=0.24",
        "click>=8.0",
        "rich>=13.0",
        "pydantic>=2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "repo-upsert=repo_upsert.cli:main",
        ],
    },
)
