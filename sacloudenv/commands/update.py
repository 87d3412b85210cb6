"""Update command: create or converge the environment and run the setup script."""

import logging

from sacloudenv.api import ApiClient
from sacloudenv.commands import add_prefix_argument, add_privkey_argument, default_private_key, read_public_key, run_async
from sacloudenv.config import load_config
from sacloudenv.redact import register_secret
from sacloudenv.workflow import run_update

logger = logging.getLogger(__name__)


def handle_update(args):
    """Handle the update command."""
    run_async(_handle_update(args))


async def _handle_update(args):
    config = load_config(args.config)
    public_key = read_public_key(args.pubkey)
    private_key = default_private_key(args.pubkey, args.privkey)
    if args.password:
        register_secret(args.password)

    logger.info(f"Updating environment '{args.prefix}' in zone {config.zone}")
    async with ApiClient.from_config(config) as client:
        env = await run_update(
            client, config, args.prefix, public_key=public_key, private_key_path=private_key, password=args.password
        )

    logger.info("")
    logger.info(f"Environment '{env.prefix}' is ready.")
    logger.info(f"  ssh -i {private_key} -p {env.ssh_port} ubuntu@{env.ssh_host}")


def register_update_command(subparsers):
    """Register the update subcommand."""
    parser = subparsers.add_parser("update", help="Create missing resources, verify existing ones, run server setup")
    add_prefix_argument(parser)
    parser.add_argument("--pubkey", default=None, help="SSH public key to register when the key does not exist yet")
    add_privkey_argument(parser)
    parser.add_argument(
        "--password", default=None, help="Login password for a newly created disk (password auth stays off without it)"
    )
    parser.set_defaults(func=handle_update)
