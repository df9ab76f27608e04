"""
Command line entry point: ``python -m mexc_watch``.
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger

from .core.config import ConfigError, load_settings
from .core.logger import setup_logging
from .scanner.app import run_scanner


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="mexc_watch",
        description="Pattern alerts for MEXC USDT perpetual futures",
    )
    parser.add_argument("--config", help="Path to config.yaml (default: project root)")
    parser.add_argument("--once", action="store_true", help="Run a single poll cycle and exit")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log alerts instead of sending them to Telegram",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Console DEBUG logging")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    load_dotenv()

    try:
        settings = load_settings(args.config, dry_run=True if args.dry_run else None)
    except ConfigError as e:
        setup_logging("INFO")
        logger.error(f"Configuration error: {e}")
        return 1

    setup_logging(
        "DEBUG" if args.verbose else settings.logging.level,
        log_file=settings.logging.file,
        rotation=settings.logging.rotation,
        retention=settings.logging.retention,
    )
    logger.info("🚀 MEXC Watch starting")

    try:
        return asyncio.run(run_scanner(settings, once=args.once))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
