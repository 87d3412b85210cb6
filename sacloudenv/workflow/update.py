"""Update: converge the environment for a prefix, then run the root setup script."""

import logging
from dataclasses import dataclass, field

from sacloudenv.api import resources
from sacloudenv.api.types import InstanceStatus
from sacloudenv.env import (
    SSH_FORWARDED_PORT,
    SSH_USER,
    PrimaryServer,
    PrimaryServerDisk,
    PrimaryServerSetupShellNote,
    PrimaryServerSshPublicKey,
    PrimarySwitch,
    PrimaryVpcRouter,
    fetch_public_ip,
)
from sacloudenv.env.equipment import ARCHIVE_TAG
from sacloudenv.remote import RemoteTarget, run_setup
from sacloudenv.remote.scripts import BOOTSTRAP_NOTE_SCRIPT, load_template
from sacloudenv.workflow.errors import (
    EquipmentNotFound,
    ServerNotConnectedToSwitch,
    SshPublicKeyAlreadyRegisteredButMismatch,
    SshPublicKeyNotGiven,
    SwitchNotConnectedToVpcRouter,
    VpcRouterHasNoGlobalIp,
)
from sacloudenv.workflow.firewall import firewall_opened

logger = logging.getLogger(__name__)


@dataclass
class Environment:
    """What an Update run converged to."""

    prefix: str
    vpc_router_id: object = None
    switch_id: object = None
    note_id: object = None
    server_id: object = None
    disk_id: object = None
    ssh_key_id: object = None
    ssh_host: str | None = None
    ssh_port: int = SSH_FORWARDED_PORT
    created: list[str] = field(default_factory=list)


def router_target(router: PrimaryVpcRouter, key_path) -> RemoteTarget:
    if not router.global_ip:
        raise VpcRouterHasNoGlobalIp(f"VPC router {router.id} has no global IP address", router_id=router.id)
    return RemoteTarget(host=router.global_ip, port=SSH_FORWARDED_PORT, user=SSH_USER, key_path=key_path)


async def resolve_target(client, prefix, key_path) -> RemoteTarget:
    """SSH target of an existing environment (the router's port forward)."""
    router = await PrimaryVpcRouter.try_get(client, prefix)
    if router is None:
        raise EquipmentNotFound(f"no VPC router named {PrimaryVpcRouter.name(prefix)}", prefix=prefix)
    await router.refresh(client)
    return router_target(router, key_path)


# ── Steps ─────────────────────────────────────────────────────────


async def _ensure_vpc_router(client, prefix, env):
    router = await PrimaryVpcRouter.try_get(client, prefix)
    if router is not None:
        logger.info(f"[CHECKED] vpc router exists, id: {router.id}")
    else:
        logger.info("[START] vpc router not found, creating...")
        router = await PrimaryVpcRouter.create(client, prefix)
        env.created.append(PrimaryVpcRouter.name(prefix))
        logger.info(f"[DONE] vpc router created, id: {router.id}")
    await resources.wait_available(client, router.kind, router.id)
    logger.info("[CHECKED] vpc router available")
    env.vpc_router_id = router.id
    return router


async def _ensure_switch(client, prefix, router, env):
    switch = await PrimarySwitch.try_get(client, prefix)
    if switch is not None:
        logger.info(f"[CHECKED] switch exists, id: {switch.id}")
        if not await resources.is_appliance_connected_to_switch(client, router.id, switch.id):
            raise SwitchNotConnectedToVpcRouter(
                f"switch {switch.id} is not connected to VPC router {router.id}",
                switch_id=switch.id,
                vpc_router_id=router.id,
            )
        logger.info("[CHECKED] switch connected to vpc router")
    else:
        logger.info("[START] switch not found, creating...")
        switch = await PrimarySwitch.create(client, prefix)
        env.created.append(PrimarySwitch.name(prefix))
        logger.info(f"[DONE] switch created, id: {switch.id}")
        logger.info("[START] connecting switch to vpc router...")
        await resources.connect_appliance_to_switch(client, router.id, switch.id)
        logger.info("[DONE] switch connected to vpc router")
    env.switch_id = switch.id
    return switch


async def _ensure_vpc_router_up(client, router):
    kind = router.kind
    if await resources.instance_status(client, kind, router.id) == InstanceStatus.UP:
        logger.info("[CHECKED] vpc router already up")
    else:
        logger.info("[START] vpc router booting...")
        await resources.power_up(client, kind, router.id)
        await resources.wait_up(client, kind, router.id)
        logger.info("[DONE] vpc router booted")
    await resources.wait_available(client, kind, router.id)
    await router.refresh(client)


async def _ensure_note(client, prefix, content, env):
    note = await PrimaryServerSetupShellNote.try_get(client, prefix)
    if note is not None:
        logger.info(f"[CHECKED] setup note exists, id: {note.id}")
        if await note.reconcile(client, content):
            logger.info("[DONE] setup note content updated")
    else:
        logger.info("[START] setup note not found, creating...")
        note = await PrimaryServerSetupShellNote.create(client, prefix, content)
        env.created.append(PrimaryServerSetupShellNote.name(prefix))
        logger.info(f"[DONE] setup note created, id: {note.id}")
    env.note_id = note.id
    return note


async def _ensure_server(client, prefix, server, switch, env):
    if server is not None:
        logger.info(f"[CHECKED] server exists, id: {server.id}")
        if not await resources.is_server_connected_to_switch(client, server.id, switch.id):
            raise ServerNotConnectedToSwitch(
                f"server {server.id} is not connected to switch {switch.id}",
                server_id=server.id,
                switch_id=switch.id,
            )
        logger.info("[CHECKED] server connected to switch")
    else:
        logger.info("[START] server not found, creating...")
        server = await PrimaryServer.create(client, prefix, switch.id)
        env.created.append(PrimaryServer.name(prefix))
        logger.info(f"[DONE] server created, id: {server.id}")
    env.server_id = server.id
    return server


async def _ensure_ssh_key(client, prefix, public_key, env):
    ssh_key = await PrimaryServerSshPublicKey.try_get(client, prefix)
    if ssh_key is not None:
        if public_key is not None and ssh_key.public_key != public_key:
            raise SshPublicKeyAlreadyRegisteredButMismatch(
                f"ssh key {PrimaryServerSshPublicKey.name(prefix)} is registered with different key material",
                ssh_key_id=ssh_key.id,
                registered=ssh_key.public_key,
                given=public_key,
            )
        logger.info(f"[CHECKED] ssh key exists, id: {ssh_key.id}")
    else:
        if public_key is None:
            raise SshPublicKeyNotGiven(
                f"ssh key {PrimaryServerSshPublicKey.name(prefix)} is not registered and no --pubkey was given",
                prefix=prefix,
            )
        logger.info("[START] ssh key not found, registering...")
        ssh_key = await PrimaryServerSshPublicKey.create(client, prefix, public_key)
        env.created.append(PrimaryServerSshPublicKey.name(prefix))
        logger.info(f"[DONE] ssh key registered, id: {ssh_key.id}")
    env.ssh_key_id = ssh_key.id
    return ssh_key


async def _ensure_disk(client, prefix, server, note, public_key, env, password=None):
    disk = await PrimaryServerDisk.try_get(client, prefix)
    if disk is not None:
        logger.info(f"[CHECKED] disk exists, id: {disk.id}")
    else:
        ssh_key = await _ensure_ssh_key(client, prefix, public_key, env)
        archive = await resources.latest_public_archive(client, ARCHIVE_TAG)
        logger.info(f"[CHECKED] archive {ARCHIVE_TAG}, id: {archive.id}")
        logger.info("[START] disk not found, creating...")
        disk = await PrimaryServerDisk.create(
            client, prefix, server.id, archive.id, ssh_key.id, note.id, password=password
        )
        env.created.append(f"{PrimaryServerDisk.name(prefix)} (disk)")
        logger.info(f"[DONE] disk created, id: {disk.id}")
    await resources.wait_available(client, disk.kind, disk.id)
    logger.info("[CHECKED] disk available")
    env.disk_id = disk.id
    return disk


async def _ensure_server_up(client, server):
    kind = server.kind
    await resources.wait_available(client, kind, server.id)
    if await resources.instance_status(client, kind, server.id) == InstanceStatus.UP:
        logger.info("[CHECKED] server already up")
    else:
        logger.info("[START] server booting...")
        await resources.power_up(client, kind, server.id)
        await resources.wait_up(client, kind, server.id)
        logger.info("[DONE] server booted")
    await resources.wait_available(client, kind, server.id)


# ── Entry point ───────────────────────────────────────────────────


async def run_update(
    client, config, prefix, public_key=None, private_key_path=None, password=None, setup_runner=run_setup
):
    """Bring the environment for *prefix* to the desired state.

    Each step either finds its equipment and validates it or creates it, so a
    failed run can simply be repeated. Finishes by running the root setup
    script with the VPC router firewall temporarily opened.

    Args:
        client: ApiClient for the configured zone.
        config: EnvConfig; ``server`` is the setup script context.
        public_key: OpenSSH public key text, needed only when the key must be
            registered.
        private_key_path: key used for the SSH session to the server.
        password: login password for a newly created disk; password
            authentication stays disabled when omitted.
        setup_runner: ``async (target, server_config)`` that runs the remote
            setup protocol.
    """
    env = Environment(prefix=prefix)

    server = await PrimaryServer.try_get(client, prefix)
    if public_key is None and (server is None or await PrimaryServerDisk.try_get(client, prefix) is None):
        # fail before creating anything when the disk could never be built
        if await PrimaryServerSshPublicKey.try_get(client, prefix) is None:
            raise SshPublicKeyNotGiven(
                f"disk {PrimaryServerDisk.name(prefix)} must be created but no public key is available",
                prefix=prefix,
            )

    router = await _ensure_vpc_router(client, prefix, env)
    switch = await _ensure_switch(client, prefix, router, env)
    await _ensure_vpc_router_up(client, router)
    note = await _ensure_note(client, prefix, load_template(BOOTSTRAP_NOTE_SCRIPT), env)
    server = await _ensure_server(client, prefix, server, switch, env)
    await _ensure_disk(client, prefix, server, note, public_key, env, password=password)
    await _ensure_server_up(client, server)

    local_ip = await fetch_public_ip(config.public_ip_url)
    await router.refresh(client)
    target = router_target(router, private_key_path)
    env.ssh_host = target.host

    async with firewall_opened(client, router.id, local_ip):
        logger.info(f"[START] root setup on {target.user}@{target.host}:{target.port}")
        await setup_runner(target, config.server)
        logger.info("[DONE] root setup finished")

    if env.created:
        logger.info(f"Created: {', '.join(env.created)}")
    else:
        logger.info("No resources created; environment already converged")
    return env
