"""Shared helpers for CLI subcommands."""

import asyncio
import logging
import os
import signal

from sacloudenv.errors import PublicKeyUnreadable

logger = logging.getLogger(__name__)

DEFAULT_PRIVATE_KEY = "~/.ssh/id_ed25519"


def run_async(coro):
    """Run *coro* to completion; SIGTERM cancels it like Ctrl-C does."""
    return asyncio.run(_cancel_on_sigterm(coro))


async def _cancel_on_sigterm(coro):
    task = asyncio.current_task()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGTERM, task.cancel)
    except NotImplementedError:
        logger.debug("SIGTERM handler not supported on this platform")
    try:
        return await coro
    finally:
        try:
            loop.remove_signal_handler(signal.SIGTERM)
        except NotImplementedError:
            pass


def read_public_key(path):
    """Return the public key text in *path*, stripped, or None without a path."""
    if path is None:
        return None
    expanded = os.path.expanduser(path)
    try:
        with open(expanded) as f:
            return f.read().strip()
    except OSError as e:
        raise PublicKeyUnreadable(f"Could not read public key {expanded}: {e}", path=expanded) from e


def default_private_key(pubkey=None, privkey=None):
    """--privkey if given, else the --pubkey path without ``.pub``, else ~/.ssh/id_ed25519."""
    if privkey:
        return os.path.expanduser(privkey)
    if pubkey and pubkey.endswith(".pub"):
        return os.path.expanduser(pubkey[: -len(".pub")])
    return os.path.expanduser(DEFAULT_PRIVATE_KEY)


def add_prefix_argument(parser):
    parser.add_argument("--prefix", required=True, help="Name prefix of every resource in the environment")


def add_privkey_argument(parser):
    parser.add_argument(
        "--privkey",
        default=None,
        help=f"SSH private key for the server (default: --pubkey without .pub, else {DEFAULT_PRIVATE_KEY})",
    )
