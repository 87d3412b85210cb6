"""Remote host access: SSH sessions, setup scripts and the completion protocol."""

from sacloudenv.remote.errors import (
    PathExistsButNotFile,
    PsOutputInvalid,
    RemoteError,
    SetupFailed,
    SetupFinishTimeout,
    SetupIllegallyStopped,
    SetupStartTimeout,
    SshConnectError,
    SshOperationFailed,
    TemplateRenderError,
)
from sacloudenv.remote.scripts import render_script, render_template
from sacloudenv.remote.setup_script import SetupState, classify, prepare, run_setup, wait_for_done
from sacloudenv.remote.ssh import RemoteTarget, Session, parse_ps_commands

__all__ = [
    "PathExistsButNotFile",
    "PsOutputInvalid",
    "RemoteError",
    "SetupFailed",
    "SetupFinishTimeout",
    "SetupIllegallyStopped",
    "SetupStartTimeout",
    "SshConnectError",
    "SshOperationFailed",
    "TemplateRenderError",
    "render_script",
    "render_template",
    "SetupState",
    "classify",
    "prepare",
    "run_setup",
    "wait_for_done",
    "RemoteTarget",
    "Session",
    "parse_ps_commands",
]
