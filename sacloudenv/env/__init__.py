"""Named equipment for one environment and the VPC router configuration."""

from sacloudenv.env.equipment import (
    SSH_FORWARDED_PORT,
    SSH_USER,
    Equipment,
    PrimaryServer,
    PrimaryServerDisk,
    PrimaryServerSetupShellNote,
    PrimaryServerSshPublicKey,
    PrimarySwitch,
    PrimaryVpcRouter,
    apply_vpc_router_config,
    fetch_public_ip,
    vpc_router_settings,
)

__all__ = [
    "SSH_FORWARDED_PORT",
    "SSH_USER",
    "Equipment",
    "PrimaryServer",
    "PrimaryServerDisk",
    "PrimaryServerSetupShellNote",
    "PrimaryServerSshPublicKey",
    "PrimarySwitch",
    "PrimaryVpcRouter",
    "apply_vpc_router_config",
    "fetch_public_ip",
    "vpc_router_settings",
]
