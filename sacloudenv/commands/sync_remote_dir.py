"""sync-remote-dir command: upload a local directory to the server over SFTP."""

import logging
import os

from sacloudenv.api import ApiClient
from sacloudenv.commands import add_prefix_argument, add_privkey_argument, default_private_key, run_async
from sacloudenv.config import load_credentials
from sacloudenv.workflow import resolve_target

logger = logging.getLogger(__name__)


def handle_sync_remote_dir(args):
    """Handle the sync-remote-dir command."""
    run_async(_handle_sync_remote_dir(args))


async def _handle_sync_remote_dir(args):
    config = load_credentials()
    async with ApiClient.from_config(config) as client:
        target = await resolve_target(client, args.prefix, default_private_key(privkey=args.privkey))

    local_dir = os.path.expanduser(args.local_dir)
    logger.info(f"Syncing {local_dir} -> {target.user}@{target.host}:{args.remote_dir}")
    async with target.session() as session:
        await session.sync_dir(local_dir, args.remote_dir)
    logger.info("Sync complete.")


def register_sync_remote_dir_command(subparsers):
    """Register the sync-remote-dir subcommand."""
    parser = subparsers.add_parser("sync-remote-dir", help="Upload a local directory to the server")
    add_prefix_argument(parser)
    parser.add_argument("local_dir", help="Local directory to upload")
    parser.add_argument("remote_dir", help="Destination directory on the server")
    add_privkey_argument(parser)
    parser.set_defaults(func=handle_sync_remote_dir)
