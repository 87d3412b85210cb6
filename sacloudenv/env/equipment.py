"""Named equipment: the fixed set of resources that make up one environment.

Every piece is found by the name ``<prefix>-<suffix>``; "exists" means exactly
one resource of that kind carries the name. Lookups never mutate anything.
"""

import ipaddress
import logging

import httpx

from sacloudenv.api import resources
from sacloudenv.api.types import (
    Appliance,
    Disk,
    DiskConfig,
    DiskInfo,
    DiskPlanId,
    Note,
    NoteInfo,
    Server,
    ServerInfo,
    ServerPlanId,
    SshPublicKey,
    SshPublicKeyInfo,
    Switch,
    SwitchInfo,
    VpcRouterInfo,
    VpcRouterPlanId,
)

logger = logging.getLogger(__name__)

# ── Topology constants ────────────────────────────────────────────

SERVER_PLAN_ID = ServerPlanId("100001001")
DISK_PLAN_ID = DiskPlanId(4)
VPC_ROUTER_PLAN_ID = VpcRouterPlanId(1)
DISK_SIZE_MB = 20480
ARCHIVE_TAG = "ubuntu-22.04-latest"

SERVER_IP = ipaddress.IPv4Address("192.168.2.2")
ROUTER_PRIVATE_IP = ipaddress.IPv4Address("192.168.2.1")
NETWORK_MASK_LEN = 24

SSH_FORWARDED_PORT = 10022
SSH_USER = "ubuntu"

PUBLIC_IP_TIMEOUT = 10


# ── Equipment ─────────────────────────────────────────────────────


class Equipment:
    """Binds a deterministic name to a resolved provider resource."""

    SUFFIX: str
    RESOURCE_CLS: type

    def __init__(self, resource):
        self.resource = resource

    def __repr__(self):
        return f"{type(self).__name__}(id={self.id}, name={self.resource.name!r})"

    @classmethod
    def name(cls, prefix) -> str:
        return f"{prefix}-{cls.SUFFIX}"

    @classmethod
    async def try_get(cls, client, prefix):
        """Return the equipment for *prefix*, or None when no resource has its name.

        Raises:
            TooManyResources: more than one resource has the name.
        """
        resource = await resources.get_by_name(client, cls.RESOURCE_CLS, cls.name(prefix))
        if resource is None:
            return None
        return cls(resource)

    @property
    def id(self):
        return self.resource.id

    @property
    def kind(self):
        return self.RESOURCE_CLS.kind()


class PrimaryVpcRouter(Equipment):
    SUFFIX = "vpc-router"
    RESOURCE_CLS = Appliance

    @classmethod
    async def create(cls, client, prefix):
        name = cls.name(prefix)
        info = VpcRouterInfo(
            name=name,
            description=name,
            plan_id=VPC_ROUTER_PLAN_ID,
            remark={
                "Router": {"VPCRouterVersion": 2},
                "Servers": [{}],
                "Switch": {"Scope": "shared"},
            },
            settings={"Router": {"InternetConnection": {"Enabled": "True"}}},
        )
        return cls(await resources.create(client, Appliance, info))

    async def refresh(self, client):
        self.resource = await resources.fetch(client, Appliance, self.id)
        return self

    @property
    def global_ip(self):
        return self.resource.global_ip


class PrimarySwitch(Equipment):
    SUFFIX = "switch"
    RESOURCE_CLS = Switch

    @classmethod
    async def create(cls, client, prefix):
        name = cls.name(prefix)
        return cls(await resources.create(client, Switch, SwitchInfo(name=name, description=name)))


class PrimaryServer(Equipment):
    SUFFIX = "server"
    RESOURCE_CLS = Server

    @classmethod
    async def create(cls, client, prefix, switch_id):
        name = cls.name(prefix)
        info = ServerInfo(
            name=name,
            description=name,
            host_name=name,
            server_plan_id=SERVER_PLAN_ID,
            connected_switch_ids=[switch_id],
            interface_driver="virtio",
            wait_disk_migration=True,
        )
        return cls(await resources.create(client, Server, info))


class PrimaryServerDisk(Equipment):
    # the disk shares the server's name
    SUFFIX = "server"
    RESOURCE_CLS = Disk

    @classmethod
    async def create(cls, client, prefix, server_id, archive_id, ssh_key_id, note_id, password=None):
        name = cls.name(prefix)
        info = DiskInfo(
            name=name,
            description=name,
            plan_id=DISK_PLAN_ID,
            source_archive_id=archive_id,
            size_mb=DISK_SIZE_MB,
            connection="virtio",
            server_id=server_id,
        )
        config = DiskConfig(
            host_name=name,
            ssh_key_ids=[ssh_key_id],
            user_ip_address=SERVER_IP,
            default_route=ROUTER_PRIVATE_IP,
            network_mask_len=NETWORK_MASK_LEN,
            password=password,
            disable_pw_auth=password is None,
            change_partition_uuid=False,
            enable_dhcp=False,
            notes=[(note_id, {})],
        )
        return cls(await resources.create(client, Disk, info, extra={"Config": config.to_value()}))


class PrimaryServerSshPublicKey(Equipment):
    SUFFIX = "pub-key"
    RESOURCE_CLS = SshPublicKey

    @classmethod
    async def create(cls, client, prefix, public_key):
        name = cls.name(prefix)
        info = SshPublicKeyInfo(name=name, description=name, public_key=public_key)
        return cls(await resources.create(client, SshPublicKey, info))

    @property
    def public_key(self) -> str:
        return self.resource.public_key


class PrimaryServerSetupShellNote(Equipment):
    SUFFIX = "server-setup-shell"
    RESOURCE_CLS = Note

    @classmethod
    async def create(cls, client, prefix, content):
        return cls(await resources.create(client, Note, NoteInfo(name=cls.name(prefix), content=content)))

    @property
    def content(self) -> str:
        return self.resource.content

    async def reconcile(self, client, content) -> bool:
        """Rewrite the note in place when its content differs from *content*.

        Returns True when an update was issued.
        """
        if self.content == content:
            return False
        logger.info(f"[DRIFT] note {self.resource.name} content differs, updating in place")
        self.resource = await resources.update_note_content(client, self.id, content)
        return True


# ── VPC router configuration ──────────────────────────────────────


def vpc_router_settings(local_ip=None, firewall_enabled=True) -> dict:
    """Router settings: private interface, firewall, SSH port forward.

    With *local_ip*, traffic to and from that address is allowed ahead of the
    catch-all deny rules. Only the firewall ``Enabled`` flag varies between
    the guarded and normal states.
    """
    receive = []
    send = []
    if local_ip is not None:
        receive.append({"Protocol": "ip", "SourceNetwork": f"{local_ip}/32", "Action": "allow", "Description": "local"})
        send.append({"Protocol": "ip", "DestinationNetwork": f"{local_ip}/32", "Action": "allow", "Description": "local"})
    receive.append({"Protocol": "ip", "Action": "deny", "Description": "otherwise"})
    send.append({"Protocol": "ip", "Action": "deny", "Description": "otherwise"})

    return {
        "Router": {
            "Interfaces": [
                None,
                {"IPAddress": [str(ROUTER_PRIVATE_IP)], "NetworkMaskLen": NETWORK_MASK_LEN},
            ],
            "Firewall": {
                "Config": [{"Receive": receive, "Send": send}],
                "Enabled": "True" if firewall_enabled else "False",
            },
            "PortForwarding": {
                "Config": [
                    {
                        "Protocol": "tcp",
                        "GlobalPort": str(SSH_FORWARDED_PORT),
                        "PrivateAddress": str(SERVER_IP),
                        "PrivatePort": "22",
                    }
                ],
                "Enabled": "True",
            },
            "WireGuardServer": {"Config": {"IPAddress": "", "Peers": []}, "Enabled": "False"},
            "PPTPServer": {"Enabled": "False"},
            "L2TPIPsecServer": {"Enabled": "False"},
        }
    }


async def apply_vpc_router_config(client, router_id, local_ip=None, firewall_enabled=True):
    """Write the settings, apply them and wait until the router is available again."""
    settings = vpc_router_settings(local_ip, firewall_enabled)
    await resources.update_appliance_settings(client, router_id, settings)
    await resources.apply_appliance_config(client, router_id)
    await resources.wait_available(client, Appliance.kind(), router_id)


async def fetch_public_ip(url, transport=None):
    """Return this machine's public IPv4 address as seen by *url*, or None.

    Failures are logged and yield None.
    """
    try:
        async with httpx.AsyncClient(timeout=PUBLIC_IP_TIMEOUT, transport=transport) as http:
            response = await http.get(url)
            response.raise_for_status()
        return str(ipaddress.IPv4Address(response.text.strip()))
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Could not determine public IP from {url}: {e}; firewall will not allow-list it")
        return None
