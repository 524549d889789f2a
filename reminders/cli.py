#!/usr/bin/env python3
"""
Push Reminders Command Line Interface

Main entry point for the `reminders-push` command. Runs the reminder job
once; meant to be triggered every minute or two by an external scheduler
(cron, Cloud Scheduler, a CI schedule).

Usage:
    reminders-push                         # Run once with args/reminders.yaml
    reminders-push --config path/to.yaml   # Run once with another config

Exit status:
    0  the run completed (individual batch or token failures are only logged)
    1  the run could not start or could not query subscriptions
"""

import argparse
import asyncio
import sys

from reminders.logging_config import get_logger, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reminders-push",
        description="Send scheduled push reminders and reconcile device tokens",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the YAML config (default: $REMINDERS_CONFIG or args/reminders.yaml)",
    )
    return parser


def run_once(config_path: str | None = None) -> int:
    """Load config, bootstrap Firebase and run the job. Returns an exit code."""
    from reminders.mobile.config import load_config
    from reminders.mobile.errors import ConfigurationError
    from reminders.mobile.job import bootstrap

    logger = get_logger("reminders.cli")

    try:
        config = load_config(config_path)
        job = bootstrap(config)
    except ConfigurationError as e:
        logger.error("bootstrap_failed", error=str(e))
        return 1

    try:
        asyncio.run(job.run())
    except Exception as e:
        logger.error("run_failed", error=str(e), exc_info=True)
        return 1
    finally:
        job.close()

    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    setup_logging()
    return run_once(args.config)


if __name__ == "__main__":
    sys.exit(main())
