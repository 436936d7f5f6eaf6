#!/usr/bin/env python

"""
Command-line entry point for the return forecasting pipeline.

Usage (from project root, after ``pip install -e .``):

    python run_pipeline.py data/prices.csv --column Close --epochs 12

The installed ``finance-forecast`` console script does the same.
"""

import sys
from importlib.metadata import PackageNotFoundError, version


def check_installed() -> bool:
    """Print install instructions when the package is missing from this interpreter."""
    try:
        version("finance-forecast")
    except PackageNotFoundError:
        print(f"finance-forecast is not installed for {sys.executable}.", file=sys.stderr)
        print("From the project root run:  pip install -e .[test]", file=sys.stderr)
        return False
    return True


def main() -> int:
    if not check_installed():
        return 1

    from finance_forecast.pipeline import main as pipeline_main

    pipeline_main()
    return 0


if __name__ == "__main__":
    sys.exit(main())
