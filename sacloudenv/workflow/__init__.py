"""Update and Clean workflows over one prefix's environment."""

from sacloudenv.workflow.clean import run_clean, wait_stable
from sacloudenv.workflow.errors import (
    AmbiguousInstanceStatus,
    EquipmentNotFound,
    FirewallRestoreFailed,
    ServerNotConnectedToSwitch,
    SshPublicKeyAlreadyRegisteredButMismatch,
    SshPublicKeyNotGiven,
    SwitchNotConnectedToVpcRouter,
    VpcRouterHasNoGlobalIp,
    WorkflowError,
)
from sacloudenv.workflow.firewall import firewall_opened
from sacloudenv.workflow.update import Environment, resolve_target, run_update

__all__ = [
    "run_clean",
    "wait_stable",
    "AmbiguousInstanceStatus",
    "EquipmentNotFound",
    "FirewallRestoreFailed",
    "ServerNotConnectedToSwitch",
    "SshPublicKeyAlreadyRegisteredButMismatch",
    "SshPublicKeyNotGiven",
    "SwitchNotConnectedToVpcRouter",
    "VpcRouterHasNoGlobalIp",
    "WorkflowError",
    "firewall_opened",
    "Environment",
    "resolve_target",
    "run_update",
]
