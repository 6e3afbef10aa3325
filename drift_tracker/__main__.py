"""
Main entry point when running the drift_tracker module with python -m.
"""

from .client import run_cli

if __name__ == "__main__":
    run_cli()
