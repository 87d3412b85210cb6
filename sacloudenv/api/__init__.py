"""Provider REST API: typed resources, paginated search, status waits, errors."""

from sacloudenv.api.client import ApiClient
from sacloudenv.api.errors import (
    ApiError,
    ApiNotFound,
    InvalidSearchResponse,
    ResourceNotFound,
    SearchIndexMismatch,
    TooManyResources,
    WaitStatusFailed,
    WaitStatusTimeout,
    WaitStatusUnknown,
)
from sacloudenv.api.types import (
    Appliance,
    ApplianceId,
    Archive,
    Disk,
    InstanceStatus,
    Note,
    ResourceId,
    ResourceKind,
    Server,
    SshPublicKey,
    Switch,
)

__all__ = [
    "ApiClient",
    "ApiError",
    "ApiNotFound",
    "InvalidSearchResponse",
    "ResourceNotFound",
    "SearchIndexMismatch",
    "TooManyResources",
    "WaitStatusFailed",
    "WaitStatusTimeout",
    "WaitStatusUnknown",
    "Appliance",
    "ApplianceId",
    "Archive",
    "Disk",
    "InstanceStatus",
    "Note",
    "ResourceId",
    "ResourceKind",
    "Server",
    "SshPublicKey",
    "Switch",
]
