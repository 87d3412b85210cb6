"""Errors raised by remote sessions and the setup-script protocol."""

from sacloudenv.errors import SacloudEnvError


class RemoteError(SacloudEnvError):
    pass


# ── Session ───────────────────────────────────────────────────────


class SshConnectError(RemoteError):
    """The connect budget elapsed; the message is the last underlying error."""


class SshOperationFailed(RemoteError):
    """An SFTP or command call on an open session failed."""


class PathExistsButNotFile(RemoteError):
    pass


class PsOutputInvalid(RemoteError):
    """``ps auwx`` output did not have the expected header or line shape."""


# ── Scripts ───────────────────────────────────────────────────────


class TemplateRenderError(RemoteError):
    pass


# ── Setup protocol ────────────────────────────────────────────────


class SetupStartTimeout(RemoteError):
    """The setup script never showed up, e.g. the trigger did not fire."""


class SetupFinishTimeout(RemoteError):
    """The setup script started but was still running at the deadline."""


class SetupIllegallyStopped(RemoteError):
    """The process vanished without removing the "finished" sentinel."""


class SetupFailed(RemoteError):
    """The script completed but left the "success" sentinel in place."""
