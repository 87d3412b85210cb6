"""Temporarily open the VPC router firewall around a block of work."""

import asyncio
import logging
from contextlib import asynccontextmanager

from sacloudenv.env import apply_vpc_router_config
from sacloudenv.workflow.errors import FirewallRestoreFailed

logger = logging.getLogger(__name__)

INTEGRITY_MARKER = "[INTEGRITY AT RISK]"


@asynccontextmanager
async def firewall_opened(client, router_id, local_ip=None):
    """Disable the firewall for the body of the ``async with`` block.

    The disable call is itself inside the guarded region, so a partial
    disable is still followed by a re-enable. The re-enable runs on normal
    exit, on any exception and on cancellation. If it fails, the failure is
    logged at CRITICAL and raised as ``FirewallRestoreFailed`` chained to the
    restore error; an error from the body is kept as its context.
    """
    try:
        logger.info(f"[START] disabling firewall on VPC router {router_id}")
        await apply_vpc_router_config(client, router_id, local_ip, firewall_enabled=False)
        logger.info(f"[DONE] firewall disabled on VPC router {router_id}")
        yield
    finally:
        await _restore(client, router_id, local_ip)


async def _restore(client, router_id, local_ip):
    logger.info(f"[START] re-enabling firewall on VPC router {router_id}")
    try:
        await apply_vpc_router_config(client, router_id, local_ip, firewall_enabled=True)
    except asyncio.CancelledError:
        logger.critical(f"{INTEGRITY_MARKER} firewall re-enable on VPC router {router_id} was cancelled")
        raise
    except Exception as e:
        logger.critical(f"{INTEGRITY_MARKER} failed to re-enable firewall on VPC router {router_id}: {e}")
        raise FirewallRestoreFailed(
            f"failed to re-enable firewall on VPC router {router_id}", router_id=router_id, cause=e
        ) from e
    logger.info(f"[DONE] firewall re-enabled on VPC router {router_id}")
