"""Clean command: delete the environment (the SSH key is kept)."""

import logging

from sacloudenv.api import ApiClient
from sacloudenv.commands import add_prefix_argument, run_async
from sacloudenv.config import load_credentials
from sacloudenv.workflow import run_clean

logger = logging.getLogger(__name__)


def handle_clean(args):
    """Handle the clean command."""
    run_async(_handle_clean(args))


async def _handle_clean(args):
    config = load_credentials()
    logger.info(f"Cleaning environment '{args.prefix}' in zone {config.zone}")
    async with ApiClient.from_config(config) as client:
        deleted = await run_clean(client, args.prefix, force=args.force)

    if deleted:
        logger.info(f"Deleted {len(deleted)} resource(s): {', '.join(deleted)}")
    else:
        logger.info("Nothing to delete.")


def register_clean_command(subparsers):
    """Register the clean subcommand."""
    parser = subparsers.add_parser("clean", help="Shut down and delete the environment")
    add_prefix_argument(parser)
    parser.add_argument("--force", action="store_true", help="Force power-off instead of a graceful shutdown")
    parser.set_defaults(func=handle_clean)
