"""CLI logging setup: plain %(message)s format on stdout."""

import logging
import sys

from sacloudenv.redact import SecretRedactingFilter


def setup_cli_logging(verbose=False):
    """Configure the root logger for CLI commands.

    With *verbose*, DEBUG records (API requests, SSH retries) are shown with a
    level/logger prefix.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    if verbose:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S"))
    else:
        handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(SecretRedactingFilter())
    root.addHandler(handler)
    # asyncssh logs every channel at INFO
    logging.getLogger("asyncssh").setLevel(logging.DEBUG if verbose else logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)
