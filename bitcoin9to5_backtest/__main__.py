"""Entry point for running the backtester as a module.

Usage:
    python -m bitcoin9to5_backtest run --days 30 --trades
"""

from .cli import main

if __name__ == "__main__":
    exit(main())
