"""port-forwarding command: forward a local port to the server until interrupted."""

import asyncio
import logging

from sacloudenv.api import ApiClient
from sacloudenv.commands import add_prefix_argument, add_privkey_argument, default_private_key, run_async
from sacloudenv.config import load_credentials
from sacloudenv.workflow import resolve_target

logger = logging.getLogger(__name__)


def handle_port_forwarding(args):
    """Handle the port-forwarding command."""
    try:
        run_async(_handle_port_forwarding(args))
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Port forwarding stopped.")


async def _handle_port_forwarding(args):
    config = load_credentials()
    async with ApiClient.from_config(config) as client:
        target = await resolve_target(client, args.prefix, default_private_key(privkey=args.privkey))

    async with target.session() as session:
        listener = await session.forward_local_port(args.local_port, args.remote_port)
        logger.info(
            f"Forwarding localhost:{args.local_port} -> {target.host}:localhost:{args.remote_port} (Ctrl-C to stop)"
        )
        try:
            await listener.wait_closed()
        finally:
            listener.close()


def register_port_forwarding_command(subparsers):
    """Register the port-forwarding subcommand."""
    parser = subparsers.add_parser("port-forwarding", help="Forward a local port to a port on the server")
    add_prefix_argument(parser)
    parser.add_argument("--local-port", type=int, required=True, help="Port to listen on locally")
    parser.add_argument("--remote-port", type=int, required=True, help="Port on the server to forward to")
    add_privkey_argument(parser)
    parser.set_defaults(func=handle_port_forwarding)
