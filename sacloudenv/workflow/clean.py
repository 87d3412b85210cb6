"""Clean: tear the environment for a prefix down in reverse dependency order."""

import asyncio
import logging
import time

from sacloudenv.api import resources
from sacloudenv.api.types import InstanceStatus
from sacloudenv.env import (
    PrimaryServer,
    PrimaryServerDisk,
    PrimaryServerSshPublicKey,
    PrimarySwitch,
    PrimaryVpcRouter,
)
from sacloudenv.workflow.errors import AmbiguousInstanceStatus

logger = logging.getLogger(__name__)

STABLE_POLL_INTERVAL = 5
STABLE_TIMEOUT = 10 * 60
STABLE_STATUSES = (InstanceStatus.UP, InstanceStatus.DOWN)


async def wait_stable(client, equipment, poll_interval=STABLE_POLL_INTERVAL, timeout=STABLE_TIMEOUT) -> InstanceStatus:
    """Poll until *equipment* reports up or down and return that status.

    Raises:
        AmbiguousInstanceStatus: still transitional (or unreported) after *timeout*.
    """
    started = time.monotonic()
    while True:
        status = await resources.instance_status(client, equipment.kind, equipment.id)
        if status in STABLE_STATUSES:
            return status
        if time.monotonic() - started > timeout:
            raise AmbiguousInstanceStatus(
                f"{equipment.resource.name} did not settle to up/down within {timeout}s",
                resource_id=equipment.id,
                status=status,
            )
        logger.info(f"[WAIT] {equipment.resource.name} is {status.value if status else 'unknown'}, waiting...")
        await asyncio.sleep(poll_interval)


async def _power_down(client, equipment, status, force):
    if status == InstanceStatus.UP:
        logger.info(f"[START] shutting down {equipment.resource.name}{' (forced)' if force else ''}...")
        await resources.power_down(client, equipment.kind, equipment.id, force=force)
        await resources.wait_down(client, equipment.kind, equipment.id)
        logger.info(f"[DONE] {equipment.resource.name} is down")
    else:
        logger.info(f"[CHECKED] {equipment.resource.name} already down")


async def _delete(client, equipment):
    logger.info(f"[START] deleting {equipment.kind.single_name.lower()} {equipment.resource.name} ({equipment.id})...")
    await resources.delete(client, equipment.kind, equipment.id)
    await resources.wait_deleted(client, equipment.kind, equipment.id)
    logger.info(f"[DONE] {equipment.kind.single_name.lower()} {equipment.resource.name} deleted")


async def run_clean(client, prefix, force=False, poll_interval=STABLE_POLL_INTERVAL, stable_timeout=STABLE_TIMEOUT):
    """Delete everything Update creates for *prefix* except the SSH key.

    Both power-managed resources are first observed in a stable state; only
    then is anything shut down or deleted. Each delete is confirmed gone
    before the next one starts.

    Returns:
        Names of the deleted resources, in deletion order.
    """
    router = await PrimaryVpcRouter.try_get(client, prefix)
    switch = await PrimarySwitch.try_get(client, prefix)
    server = await PrimaryServer.try_get(client, prefix)
    disk = await PrimaryServerDisk.try_get(client, prefix)

    statuses = {}
    for equipment in (router, server):
        if equipment is not None:
            statuses[equipment.id] = await wait_stable(client, equipment, poll_interval, stable_timeout)
            logger.info(f"[CHECKED] {equipment.resource.name} is {statuses[equipment.id].value}")

    deleted = []

    if router is not None:
        await _power_down(client, router, statuses[router.id], force)
        await _delete(client, router)
        deleted.append(router.resource.name)
    else:
        logger.info(f"[CHECKED] no vpc router named {PrimaryVpcRouter.name(prefix)}")

    if switch is not None:
        await _delete(client, switch)
        deleted.append(switch.resource.name)
    else:
        logger.info(f"[CHECKED] no switch named {PrimarySwitch.name(prefix)}")

    if server is not None:
        await _power_down(client, server, statuses[server.id], force)
        await _delete(client, server)
        deleted.append(server.resource.name)
    else:
        logger.info(f"[CHECKED] no server named {PrimaryServer.name(prefix)}")

    if disk is not None:
        await _delete(client, disk)
        deleted.append(f"{disk.resource.name} (disk)")
    else:
        logger.info(f"[CHECKED] no disk named {PrimaryServerDisk.name(prefix)}")

    logger.info(f"[SKIPPED] ssh key {PrimaryServerSshPublicKey.name(prefix)} is kept for reuse across runs")
    return deleted
