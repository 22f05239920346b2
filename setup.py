"""Setup file for editable install compatibility."""
from setuptools import setup, find_packages

setup(
    name="portfolio-search",
    version="1.0.0",
    packages=find_packages(include=["portfolio_search", "portfolio_search.*"]),
    install_requires=[
        "numpy>=1.20",
        "pandas>=2.2",
        "scipy>=1.7",
        "matplotlib>=3.4",
        "openpyxl>=3.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "psearch-optimize=portfolio_search.cli.main:main",
        ],
    },
    python_requires=">=3.9",
)
