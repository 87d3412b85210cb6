"""Kind-level operations on top of :class:`ApiClient`.

Functions take the entity class (``Server``, ``Disk``, ...) or a typed ID so
the path and JSON keys come from its :class:`ResourceKind`.
"""

import logging

from sacloudenv.api.client import AVAILABILITY_TIMEOUT, DELETE_TIMEOUT, POWER_TIMEOUT
from sacloudenv.api.errors import ResourceNotFound
from sacloudenv.api.types import (
    Appliance,
    ApplianceId,
    Archive,
    InstanceStatus,
    Note,
    NoteId,
    ResourceKind,
    Server,
    ServerId,
    SwitchId,
)

logger = logging.getLogger(__name__)


async def get_by_name(client, resource_cls, name):
    """Return the single resource of *resource_cls* named *name*, or None."""
    kind = resource_cls.kind()
    value = await client.search_single(
        kind.path, kind.plural_name, {"Name": [name]}, match=lambda r: r.get("Name") == name
    )
    if value is None:
        return None
    return resource_cls.from_value(value)


async def get_one_by_tags(client, resource_cls, tags):
    kind = resource_cls.kind()
    value = await client.search_single(kind.path, kind.plural_name, {"Tags": list(tags)})
    if value is None:
        return None
    return resource_cls.from_value(value)


async def create(client, resource_cls, info, extra=None):
    """Create a resource from a request-body dataclass.

    *extra* adds sibling keys to the envelope (the disk ``Config`` block).
    """
    kind = resource_cls.kind()
    body = {kind.single_name: info.to_value()}
    if extra:
        body.update(extra)
    value = await client.create(kind.path, kind.single_name, body)
    return resource_cls.from_value(value)


async def fetch(client, resource_cls, resource_id):
    kind = resource_cls.kind()
    value = await client.fetch(kind.resource_path(resource_id), kind.single_name)
    return resource_cls.from_value(value)


async def delete(client, kind: ResourceKind, resource_id, body=None):
    await client.delete(kind.resource_path(resource_id), body)


async def wait_deleted(client, kind: ResourceKind, resource_id, timeout=DELETE_TIMEOUT):
    await client.wait_deleted(kind.resource_path(resource_id), kind.single_name, timeout)


async def wait_available(client, kind: ResourceKind, resource_id, timeout=AVAILABILITY_TIMEOUT):
    await client.wait_available(kind.resource_path(resource_id), kind.single_name, timeout)


# ── Power ─────────────────────────────────────────────────────────


async def instance_status(client, kind: ResourceKind, resource_id) -> InstanceStatus | None:
    value = await client.fetch(kind.resource_path(resource_id), kind.single_name)
    instance = value.get("Instance") or {}
    return InstanceStatus.parse(instance.get("Status"))


async def power_up(client, kind: ResourceKind, resource_id):
    await client.request_resource("PUT", f"{kind.resource_path(resource_id)}/power")


async def power_down(client, kind: ResourceKind, resource_id, force=False):
    body = {"Force": True} if force else None
    await client.request_resource("DELETE", f"{kind.resource_path(resource_id)}/power", body=body)


async def wait_up(client, kind: ResourceKind, resource_id, timeout=POWER_TIMEOUT):
    await client.wait_up(kind.resource_path(resource_id), kind.single_name, timeout)


async def wait_down(client, kind: ResourceKind, resource_id, timeout=POWER_TIMEOUT):
    await client.wait_down(kind.resource_path(resource_id), kind.single_name, timeout)


# ── Switch topology ───────────────────────────────────────────────


async def connected_servers(client, switch_id: SwitchId) -> list[Server]:
    values = await client.search(f"switch/{switch_id}/server", ResourceKind.SERVER.plural_name)
    return [Server.from_value(v) for v in values]


async def connected_appliances(client, switch_id: SwitchId) -> list[Appliance]:
    values = await client.search(f"switch/{switch_id}/appliance", ResourceKind.APPLIANCE.plural_name)
    return [Appliance.from_value(v) for v in values]


async def is_server_connected_to_switch(client, server_id: ServerId, switch_id: SwitchId) -> bool:
    servers = await connected_servers(client, switch_id)
    return any(server.id == server_id for server in servers)


async def is_appliance_connected_to_switch(client, appliance_id: ApplianceId, switch_id: SwitchId) -> bool:
    appliances = await connected_appliances(client, switch_id)
    return any(appliance.id == appliance_id for appliance in appliances)


# ── Appliance configuration ───────────────────────────────────────


async def connect_appliance_to_switch(client, appliance_id: ApplianceId, switch_id: SwitchId, interface=1):
    await client.update(f"appliance/{appliance_id}/interface/{interface}/to/switch/{switch_id}")


async def update_appliance_settings(client, appliance_id: ApplianceId, settings: dict):
    await client.update(f"appliance/{appliance_id}", {"Appliance": {"Settings": settings}})


async def apply_appliance_config(client, appliance_id: ApplianceId):
    """Apply pending settings; without this the router keeps its old configuration."""
    await client.update(f"appliance/{appliance_id}/config")


# ── Notes / archives ──────────────────────────────────────────────


async def update_note_content(client, note_id: NoteId, content: str) -> Note:
    value = await client.request_resource(
        "PUT", ResourceKind.NOTE.resource_path(note_id), ResourceKind.NOTE.single_name, {"Note": {"Content": content}}
    )
    return Note.from_value(value)


async def latest_public_archive(client, tag) -> Archive:
    archive = await get_one_by_tags(client, Archive, [tag])
    if archive is None:
        raise ResourceNotFound(f"no archive tagged '{tag}'", kind=ResourceKind.ARCHIVE, tag=tag)
    return archive
