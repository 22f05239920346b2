"""
CLI entry point for minimum-risk portfolio search.

Usage:
    python run_cli.py                       # Run with sample data
    python run_cli.py --file prices.csv     # Run on a price file
    python run_cli.py --config run.yaml     # Settings from YAML
    python run_cli.py --box 0.1 0.3         # Uniform box bounds

For installed package, use: psearch-optimize
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from portfolio_search.cli.main import main

if __name__ == "__main__":
    sys.exit(main())
