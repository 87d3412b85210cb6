"""Resource kinds, typed IDs, entities and request bodies for the provider API."""

from dataclasses import dataclass, field
from enum import Enum
from ipaddress import IPv4Address
from typing import ClassVar

from sacloudenv.api.errors import RequiredFieldMissing, ResourceDeserializationFailed


class ResourceKind(Enum):
    """Resource kinds used by the tool: (singular key, plural key, URL path)."""

    SERVER = ("Server", "Servers", "server")
    DISK = ("Disk", "Disks", "disk")
    SSH_KEY = ("SSHKey", "SSHKeys", "sshkey")
    SWITCH = ("Switch", "Switches", "switch")
    APPLIANCE = ("Appliance", "Appliances", "appliance")
    ARCHIVE = ("Archive", "Archives", "archive")
    SERVER_PLAN = ("ServerPlan", "ServerPlans", "product/server")
    DISK_PLAN = ("DiskPlan", "DiskPlans", "product/disk")
    NOTE = ("Note", "Notes", "note")

    def __init__(self, single_name, plural_name, path):
        self.single_name = single_name
        self.plural_name = plural_name
        self.path = path

    def resource_path(self, resource_id) -> str:
        return f"{self.path}/{resource_id}"


class InstanceStatus(Enum):
    CLEANING = "cleaning"
    UP = "up"
    DOWN = "down"

    @classmethod
    def parse(cls, value):
        """Return the matching member, or None for absent/unrecognized values."""
        try:
            return cls(value)
        except ValueError:
            return None


AVAILABLE = "available"
FAILED = "failed"
AVAILABILITY_WORKING = frozenset({"uploading", "migrating"})


# ── IDs ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ResourceId:
    """An ID that is either a string or an unsigned integer, kept as received.

    The provider is inconsistent: most IDs are numeric-looking strings while
    disk plan IDs are JSON numbers. Subclasses exist per kind so IDs of
    different kinds never compare equal.
    """

    value: str | int

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, (str, int)):
            raise TypeError(f"{type(self).__name__} must be str or int, got {self.value!r}")
        if isinstance(self.value, int) and self.value < 0:
            raise ValueError(f"{type(self).__name__} must be unsigned, got {self.value}")

    def __str__(self) -> str:
        return str(self.value)

    def to_wire(self):
        return self.value

    @classmethod
    def from_wire(cls, raw):
        return cls(raw)


class ServerId(ResourceId):
    pass


class DiskId(ResourceId):
    pass


class SwitchId(ResourceId):
    pass


class ApplianceId(ResourceId):
    pass


class ArchiveId(ResourceId):
    pass


class SshKeyId(ResourceId):
    pass


class NoteId(ResourceId):
    pass


class ServerPlanId(ResourceId):
    pass


class DiskPlanId(ResourceId):
    pass


class VpcRouterPlanId(ResourceId):
    pass


def _ref(resource_id: ResourceId) -> dict:
    return {"ID": resource_id.to_wire()}


# ── Entities ──────────────────────────────────────────────────────


@dataclass
class Resource:
    """A provider resource: its ID plus the raw attribute document.

    Unknown fields are kept in ``raw``; status fields are read from it on
    demand and are only as fresh as the fetch that produced the entity.
    """

    KIND: ClassVar[ResourceKind]
    ID_TYPE: ClassVar[type] = ResourceId

    id: ResourceId
    name: str | None = None
    raw: dict = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def kind(cls) -> ResourceKind:
        return cls.KIND

    @classmethod
    def from_value(cls, value):
        if not isinstance(value, dict):
            raise ResourceDeserializationFailed(
                f"{cls.KIND.single_name} is not an object", kind=cls.KIND, value=value
            )
        raw_id = value.get("ID")
        if isinstance(raw_id, bool) or not isinstance(raw_id, (str, int)):
            raise ResourceDeserializationFailed(
                f"{cls.KIND.single_name} has no valid ID", kind=cls.KIND, value=value
            )
        try:
            resource_id = cls.ID_TYPE.from_wire(raw_id)
        except (TypeError, ValueError) as e:
            raise ResourceDeserializationFailed(str(e), kind=cls.KIND, value=value) from e
        return cls(id=resource_id, name=value.get("Name"), raw=value)

    def to_value(self) -> dict:
        value = dict(self.raw)
        value["ID"] = self.id.to_wire()
        if self.name is not None:
            value["Name"] = self.name
        return value

    @property
    def path(self) -> str:
        return self.KIND.resource_path(self.id)

    @property
    def availability(self) -> str | None:
        return self.raw.get("Availability")

    @property
    def instance_status(self) -> InstanceStatus | None:
        instance = self.raw.get("Instance") or {}
        return InstanceStatus.parse(instance.get("Status"))

    @property
    def tags(self) -> list[str]:
        return list(self.raw.get("Tags") or [])


class Server(Resource):
    KIND = ResourceKind.SERVER
    ID_TYPE = ServerId


class Disk(Resource):
    KIND = ResourceKind.DISK
    ID_TYPE = DiskId


class Switch(Resource):
    KIND = ResourceKind.SWITCH
    ID_TYPE = SwitchId


class Appliance(Resource):
    KIND = ResourceKind.APPLIANCE
    ID_TYPE = ApplianceId

    @property
    def global_ip(self) -> str | None:
        """Shared-segment address of the first interface (the router's public side)."""
        interfaces = self.raw.get("Interfaces") or []
        if interfaces and isinstance(interfaces[0], dict):
            return interfaces[0].get("IPAddress")
        return None

    @property
    def firewall_enabled(self) -> bool | None:
        router = (self.raw.get("Settings") or {}).get("Router") or {}
        enabled = (router.get("Firewall") or {}).get("Enabled")
        if enabled is None:
            return None
        return enabled == "True"


class Archive(Resource):
    KIND = ResourceKind.ARCHIVE
    ID_TYPE = ArchiveId


class SshPublicKey(Resource):
    KIND = ResourceKind.SSH_KEY
    ID_TYPE = SshKeyId

    @property
    def public_key(self) -> str:
        return self.raw.get("PublicKey", "")


class Note(Resource):
    KIND = ResourceKind.NOTE
    ID_TYPE = NoteId

    @property
    def content(self) -> str:
        return self.raw.get("Content", "")


class ServerPlan(Resource):
    KIND = ResourceKind.SERVER_PLAN
    ID_TYPE = ServerPlanId


class DiskPlan(Resource):
    KIND = ResourceKind.DISK_PLAN
    ID_TYPE = DiskPlanId


# ── Request bodies ────────────────────────────────────────────────


def _require(**fields):
    for name, value in fields.items():
        if value is None or value == "" or value == []:
            raise RequiredFieldMissing(f"required field '{name}' is missing", field=name)


@dataclass
class ServerInfo:
    name: str
    server_plan_id: ServerPlanId
    description: str | None = None
    host_name: str | None = None
    interface_driver: str = "virtio"
    connected_switch_ids: list[SwitchId] | None = None
    wait_disk_migration: bool | None = None

    def __post_init__(self):
        _require(name=self.name, server_plan=self.server_plan_id)

    def to_value(self) -> dict:
        value = {
            "Name": self.name,
            "ServerPlan": _ref(self.server_plan_id),
            "InterfaceDriver": self.interface_driver,
        }
        if self.description is not None:
            value["Description"] = self.description
        if self.host_name is not None:
            value["HostName"] = self.host_name
        if self.connected_switch_ids is not None:
            value["ConnectedSwitches"] = [_ref(i) for i in self.connected_switch_ids]
        if self.wait_disk_migration is not None:
            value["WaitDiskMigration"] = self.wait_disk_migration
        return value


@dataclass
class DiskInfo:
    name: str
    plan_id: DiskPlanId
    source_archive_id: ArchiveId
    size_mb: int
    server_id: ServerId
    description: str | None = None
    connection: str = "virtio"

    def __post_init__(self):
        _require(
            name=self.name,
            plan=self.plan_id,
            source_archive=self.source_archive_id,
            size_mb=self.size_mb,
            server=self.server_id,
        )

    def to_value(self) -> dict:
        value = {
            "Name": self.name,
            "Plan": _ref(self.plan_id),
            "SourceArchive": _ref(self.source_archive_id),
            "SizeMB": self.size_mb,
            "Connection": self.connection,
            "Server": _ref(self.server_id),
        }
        if self.description is not None:
            value["Description"] = self.description
        return value


@dataclass
class DiskConfig:
    """Disk edit parameters applied when the disk is created from an archive."""

    ssh_key_ids: list[SshKeyId]
    user_ip_address: IPv4Address
    default_route: IPv4Address
    network_mask_len: int
    host_name: str | None = None
    password: str | None = None
    disable_pw_auth: bool = True
    change_partition_uuid: bool = False
    enable_dhcp: bool = False
    notes: list[tuple[NoteId, dict]] = field(default_factory=list)

    def __post_init__(self):
        _require(
            ssh_keys=self.ssh_key_ids,
            user_ip_address=self.user_ip_address,
            user_subnet=self.default_route,
        )
        if self.password is not None and self.disable_pw_auth:
            raise RequiredFieldMissing(
                "password given but password authentication is disabled", field="password"
            )
        if self.password is None and not self.disable_pw_auth:
            raise RequiredFieldMissing(
                "password authentication is enabled but no password given", field="password"
            )

    def to_value(self) -> dict:
        value = {
            "SSHKeys": [_ref(i) for i in self.ssh_key_ids],
            "ChangePartitionUUID": self.change_partition_uuid,
            "DisablePWAuth": self.disable_pw_auth,
            "UserIPAddress": str(self.user_ip_address),
            "UserIpv4Net": {
                "DefaultRoute": str(self.default_route),
                "NetworkMaskLen": self.network_mask_len,
            },
            "EnableDHCP": self.enable_dhcp,
            "Notes": [{"ID": note_id.to_wire(), "Variables": variables} for note_id, variables in self.notes],
        }
        if self.password is not None:
            value["Password"] = self.password
        if self.host_name is not None:
            value["HostName"] = self.host_name
        return value


@dataclass
class SwitchInfo:
    name: str
    description: str | None = None

    def __post_init__(self):
        _require(name=self.name)

    def to_value(self) -> dict:
        value = {"Name": self.name}
        if self.description is not None:
            value["Description"] = self.description
        return value


@dataclass
class VpcRouterInfo:
    name: str
    plan_id: VpcRouterPlanId
    remark: dict
    settings: dict
    description: str | None = None

    def __post_init__(self):
        _require(name=self.name, plan=self.plan_id)

    def to_value(self) -> dict:
        value = {
            "Class": "vpcrouter",
            "Name": self.name,
            "Plan": _ref(self.plan_id),
            "Remark": self.remark,
            "Settings": self.settings,
        }
        if self.description is not None:
            value["Description"] = self.description
        return value


@dataclass
class SshPublicKeyInfo:
    name: str
    public_key: str
    description: str | None = None

    def __post_init__(self):
        _require(name=self.name, public_key=self.public_key)

    def to_value(self) -> dict:
        value = {"Name": self.name, "PublicKey": self.public_key}
        if self.description is not None:
            value["Description"] = self.description
        return value


@dataclass
class NoteInfo:
    name: str
    content: str
    note_class: str = "shell"

    def __post_init__(self):
        _require(name=self.name)

    def to_value(self) -> dict:
        return {"Name": self.name, "Class": self.note_class, "Content": self.content}
