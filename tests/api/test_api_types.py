"""Tests for typed IDs, entity parsing and request bodies."""

from ipaddress import IPv4Address

import pytest

from sacloudenv.api.errors import RequiredFieldMissing, ResourceDeserializationFailed
from sacloudenv.api.types import (
    Appliance,
    DiskConfig,
    DiskInfo,
    DiskPlanId,
    InstanceStatus,
    NoteId,
    ResourceKind,
    Server,
    ServerId,
    ServerInfo,
    ServerPlanId,
    SshKeyId,
    SwitchId,
    ArchiveId,
)

# ── IDs ───────────────────────────────────────────────────────────


def test_ids_of_different_kinds_never_equal():
    assert ServerId("1") == ServerId("1")
    assert ServerId("1") != SwitchId("1")
    assert len({ServerId("1"), ServerId("1"), SwitchId("1")}) == 2


def test_id_keeps_wire_type():
    assert DiskPlanId(4).to_wire() == 4
    assert ServerId("113").to_wire() == "113"
    assert str(DiskPlanId(4)) == "4"


@pytest.mark.parametrize("raw", [True, -1, 1.5, None])
def test_id_rejects_invalid_values(raw):
    with pytest.raises((TypeError, ValueError)):
        ServerId(raw)


# ── Entities ──────────────────────────────────────────────────────


def test_server_from_value():
    server = Server.from_value(
        {"ID": "113", "Name": "dev-server", "Availability": "available", "Instance": {"Status": "up"}, "Extra": 1}
    )
    assert server.id == ServerId("113")
    assert server.name == "dev-server"
    assert server.availability == "available"
    assert server.instance_status == InstanceStatus.UP
    assert server.path == "server/113"
    assert server.to_value()["Extra"] == 1


def test_unknown_instance_status_is_none():
    server = Server.from_value({"ID": "1", "Instance": {"Status": "migrating"}})
    assert server.instance_status is None


@pytest.mark.parametrize("value", [{"Name": "x"}, {"ID": True}, {"ID": -5}, "server"])
def test_from_value_rejects_bad_documents(value):
    with pytest.raises(ResourceDeserializationFailed):
        Server.from_value(value)


def test_appliance_global_ip_and_firewall():
    router = Appliance.from_value(
        {
            "ID": "9",
            "Interfaces": [{"IPAddress": "203.0.113.10"}, {"IPAddress": None}],
            "Settings": {"Router": {"Firewall": {"Enabled": "False"}}},
        }
    )
    assert router.global_ip == "203.0.113.10"
    assert router.firewall_enabled is False
    assert Appliance.from_value({"ID": "9"}).global_ip is None


def test_resource_kind_paths():
    assert ResourceKind.SSH_KEY.resource_path(SshKeyId("5")) == "sshkey/5"
    assert ResourceKind.SWITCH.plural_name == "Switches"


# ── Request bodies ────────────────────────────────────────────────


def test_server_info_value():
    info = ServerInfo(
        name="dev-server",
        server_plan_id=ServerPlanId("100001001"),
        connected_switch_ids=[SwitchId("7")],
        wait_disk_migration=True,
    )
    assert info.to_value() == {
        "Name": "dev-server",
        "ServerPlan": {"ID": "100001001"},
        "InterfaceDriver": "virtio",
        "ConnectedSwitches": [{"ID": "7"}],
        "WaitDiskMigration": True,
    }


def test_server_info_requires_name():
    with pytest.raises(RequiredFieldMissing):
        ServerInfo(name="", server_plan_id=ServerPlanId("1"))


def test_disk_info_plan_is_numeric():
    info = DiskInfo(
        name="dev-server",
        plan_id=DiskPlanId(4),
        source_archive_id=ArchiveId("11"),
        size_mb=20480,
        server_id=ServerId("12"),
    )
    assert info.to_value()["Plan"] == {"ID": 4}


def _disk_config(**overrides):
    kwargs = dict(
        ssh_key_ids=[SshKeyId("3")],
        user_ip_address=IPv4Address("192.168.2.2"),
        default_route=IPv4Address("192.168.2.1"),
        network_mask_len=24,
        notes=[(NoteId("8"), {})],
    )
    kwargs.update(overrides)
    return DiskConfig(**kwargs)


def test_disk_config_value():
    value = _disk_config(host_name="dev-server").to_value()
    assert value["SSHKeys"] == [{"ID": "3"}]
    assert value["UserIPAddress"] == "192.168.2.2"
    assert value["UserIpv4Net"] == {"DefaultRoute": "192.168.2.1", "NetworkMaskLen": 24}
    assert value["DisablePWAuth"] is True
    assert value["Notes"] == [{"ID": "8", "Variables": {}}]
    assert "Password" not in value


def test_disk_config_requires_ssh_key():
    with pytest.raises(RequiredFieldMissing):
        _disk_config(ssh_key_ids=[])


def test_disk_config_password_needs_pw_auth():
    with pytest.raises(RequiredFieldMissing):
        _disk_config(password="hunter2hunter2")
    with pytest.raises(RequiredFieldMissing):
        _disk_config(disable_pw_auth=False)
    assert _disk_config(password="hunter2hunter2", disable_pw_auth=False).to_value()["Password"] == "hunter2hunter2"
