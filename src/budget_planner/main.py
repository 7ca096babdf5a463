"""Entry point for running the budget planner."""

from __future__ import annotations

import argparse
import logging

from .app import run_app
from .config import AppConfig


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Monthly budget planner desktop client")
    parser.add_argument(
        "--backend",
        dest="backend",
        help="Command that starts the budgeting backend (defaults to budget-backend).",
    )
    parser.add_argument(
        "--preferences-file",
        dest="preferences_file",
        help="Path to the JSON file holding client preferences (defaults to budget_preferences.json).",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Logging verbosity.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    config = AppConfig.from_env().override(
        backend=args.backend,
        preferences_file=args.preferences_file,
        log_level=args.log_level,
    )
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run_app(config)


if __name__ == "__main__":
    main()
