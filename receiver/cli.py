# receiver/cli.py
"""
Command line entry point.

    data-receiver --database-files /var/db --port 8888 --verbose

Flags override the environment (see receiver/config.py); LOG_LEVEL is only
consulted when neither --debug nor --verbose is given.
"""

import argparse
import dataclasses
import os
import sys
from typing import List, Optional

import uvicorn

from receiver import __version__, monitoring
from receiver.config import Settings, resolve_log_level
from receiver.errors import ConfigurationError

EXIT_CONFIG_ERROR = 2


def build_parser(defaults: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="data-receiver",
        description="A simple data receiver which will save JSON formatted data into a SQLite database for later use.",
    )
    parser.add_argument("-a", "--addr", default=defaults.host, help="The IP address to listen for requests")
    parser.add_argument("-p", "--port", type=int, default=defaults.port, help="The port number to listen for requests")
    parser.add_argument(
        "--database-files",
        default=defaults.database_files,
        help="File path to where databases are located",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Increase log messaging to verbose")
    parser.add_argument("--debug", action="store_true", help="Increase log messaging to debug")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def settings_from_args(argv: Optional[List[str]] = None) -> Settings:
    defaults = Settings.from_env()
    args = build_parser(defaults).parse_args(argv)
    return dataclasses.replace(
        defaults,
        host=args.addr,
        port=args.port,
        database_files=args.database_files,
        log_level=resolve_log_level(args.debug, args.verbose, os.getenv("LOG_LEVEL")),
    )


def main(argv: Optional[List[str]] = None) -> int:
    settings = settings_from_args(argv)
    monitoring.configure_logging(settings.log_level_number)
    monitoring.init_sentry()

    try:
        settings.validate()
    except ConfigurationError as e:
        monitoring.logger.error("Invalid configuration: %s", e)
        return EXIT_CONFIG_ERROR

    # imported late so the app module sees the configured logging
    from receiver.app import create_app

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
