"""Consistency errors detected while converging or tearing down an environment."""

from sacloudenv.errors import SacloudEnvError


class WorkflowError(SacloudEnvError):
    pass


class SwitchNotConnectedToVpcRouter(WorkflowError):
    pass


class ServerNotConnectedToSwitch(WorkflowError):
    pass


class SshPublicKeyAlreadyRegisteredButMismatch(WorkflowError):
    pass


class SshPublicKeyNotGiven(WorkflowError):
    pass


class AmbiguousInstanceStatus(WorkflowError):
    """An instance stayed outside up/down for the whole pre-check window."""


class EquipmentNotFound(WorkflowError):
    pass


class FirewallRestoreFailed(WorkflowError):
    """Re-enabling the VPC router firewall failed; the environment is exposed."""


class VpcRouterHasNoGlobalIp(WorkflowError):
    pass
