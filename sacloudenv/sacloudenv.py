#!/usr/bin/env python3
"""Sakura Cloud development environment tool — CLI entrypoint."""

import argparse
import asyncio
import json
import logging
import sys

from sacloudenv.commands.clean import register_clean_command
from sacloudenv.commands.port_forwarding import register_port_forwarding_command
from sacloudenv.commands.sync_remote_dir import register_sync_remote_dir_command
from sacloudenv.commands.update import register_update_command
from sacloudenv.config import DEFAULT_CONFIG_PATH
from sacloudenv.errors import SacloudEnvError
from sacloudenv.logging_setup import setup_cli_logging

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(prog="sacloudenv", description="Sakura Cloud development environment tool")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help=f"Config file (default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log API requests and SSH retries")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_update_command(subparsers)
    register_clean_command(subparsers)
    register_sync_remote_dir_command(subparsers)
    register_port_forwarding_command(subparsers)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_cli_logging(args.verbose)
    try:
        args.func(args)
    except SacloudEnvError as e:
        logger.error(json.dumps(e.to_dict(), ensure_ascii=False))
        sys.exit(1)
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.error("Interrupted.")
        sys.exit(130)


if __name__ == "__main__":
    main()
