"""
Main entry point for Weblate Notifier.

Runs a single check pass from the command line, or serves the
poll and webhook endpoints over HTTP.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import coloredlogs
from aiohttp import web

from weblate_notifier.app import create_app
from weblate_notifier.config import AppConfig, Credentials, load_config, load_credentials
from weblate_notifier.exceptions import ConfigurationError
from weblate_notifier.runner import run_check
from weblate_notifier.telegram import TelegramNotifier

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """
    Configure application logging.

    Parameters
    ----------
    verbose : bool
        If True, set log level to DEBUG.
    """
    level = logging.DEBUG if verbose else logging.INFO

    coloredlogs.install(
        level=level,
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("telegram").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        description="Forward Weblate translation activity to Telegram",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to configuration file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("check", help="Run a single check and print the summary")

    serve = subparsers.add_parser("serve", help="Serve the poll and webhook endpoints")
    serve.add_argument("--host", default="0.0.0.0", help="Address to bind")
    serve.add_argument("--port", type=int, default=8080, help="Port to listen on")

    return parser


def run_once(config_path: Path) -> int:
    """
    Run a single check pass and print the summary as JSON.

    Returns
    -------
    int
        Process exit code.
    """
    config = load_config(config_path)

    try:
        credentials = load_credentials()
    except ConfigurationError as e:
        print(
            json.dumps(
                {"error": str(e), "has_token": e.has_token, "has_chat_id": e.has_chat_id}
            )
        )
        return 1

    summary = asyncio.run(run_check(config, credentials))
    print(json.dumps(summary.to_dict(), indent=2, ensure_ascii=False))
    return 0


async def check_telegram(config: AppConfig, credentials: Credentials) -> bool:
    """
    Check that the bot can reach Telegram.

    Returns
    -------
    bool
        True if the connection is working.
    """
    notifier = TelegramNotifier(
        credentials,
        config.delivery,
        proxy_url=config.defaults.proxy,
        display_timezone=config.defaults.display_timezone,
    )
    try:
        return await notifier.test_connection()
    finally:
        await notifier.close()


def main() -> None:
    """Main entry point."""
    args = build_parser().parse_args()

    setup_logging(args.verbose)

    config_path = Path(args.config)
    if not config_path.exists():
        logger.error("Configuration file not found: %s", config_path)
        sys.exit(1)

    if args.command == "check":
        sys.exit(run_once(config_path))

    config = load_config(config_path)

    try:
        credentials = load_credentials()
    except ConfigurationError:
        logger.warning("Credentials missing, requests will be answered with an error")
    else:
        # Test Telegram connection
        if not asyncio.run(check_telegram(config, credentials)):
            logger.error("Failed to connect to Telegram, exiting")
            sys.exit(1)

    app = create_app(config)
    logger.info("Serving on %s:%d", args.host, args.port)
    web.run_app(app, host=args.host, port=args.port, print=None)


if __name__ == "__main__":
    main()
