"""Root exception type shared by every layer."""

from enum import Enum


def _jsonable(value):
    if hasattr(value, "to_wire"):
        return value.to_wire()
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, BaseException):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


class SacloudEnvError(Exception):
    """Base exception for sacloudenv.

    Keyword arguments become structured details so the CLI can log the
    error as a single JSON object.
    """

    def __init__(self, message: str, **details) -> None:
        super().__init__(message)
        self.details = details

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "message": str(self),
            **{key: _jsonable(value) for key, value in self.details.items()},
        }


class ConfigError(SacloudEnvError):
    """Configuration file or environment is missing required values."""


class PublicKeyUnreadable(ConfigError):
    """The --pubkey file could not be read."""
