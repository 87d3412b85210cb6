"""Root setup script protocol: upload, arm sentinels, then wait for completion.

The remote script signals progress by deleting zero-byte sentinel files in
the login user's home directory; a sentinel that still exists means the fact
it names has not happened yet.
"""

import asyncio
import logging
import time
from enum import Enum

from sacloudenv.remote.errors import SetupFailed, SetupFinishTimeout, SetupIllegallyStopped, SetupStartTimeout
from sacloudenv.remote.scripts import ROOT_SETUP_SCRIPT, USER_SETUP_SCRIPT, render_script

logger = logging.getLogger(__name__)

NOT_YET_STARTED = "root_setup_not_yet_started_once"
NOT_YET_FINISHED = "root_setup_not_yet_finished_once"
NOT_YET_SUCCEEDED = "root_setup_not_yet_success_once"

PROCESS_NAME = ROOT_SETUP_SCRIPT

START_TIMEOUT = 2 * 60
FINISH_TIMEOUT = 10 * 60
POLL_INTERVAL = 5


class SetupState(Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ILLEGALLY_STOPPED = "illegally_stopped"


def classify(process_running, started_pending, finished_pending, success_pending) -> SetupState:
    """Fold one poll's observations into a state.

    The ``*_pending`` flags are sentinel presence: True means the script has
    not yet removed that file.
    """
    if process_running:
        return SetupState.RUNNING
    if started_pending:
        return SetupState.NOT_STARTED
    if finished_pending:
        return SetupState.ILLEGALLY_STOPPED
    if success_pending:
        return SetupState.FAILED
    return SetupState.SUCCEEDED


async def observe(session) -> SetupState:
    # "started" is read before the process table: a script that launches
    # between the two reads is then seen as not started, never as stopped.
    started_pending = await session.file_exists(NOT_YET_STARTED)
    running = await session.process_exists(PROCESS_NAME)
    finished_pending = await session.file_exists(NOT_YET_FINISHED)
    success_pending = await session.file_exists(NOT_YET_SUCCEEDED)
    state = classify(running, started_pending, finished_pending, success_pending)
    logger.debug(
        f"[SETUP] running={running} started_pending={started_pending} "
        f"finished_pending={finished_pending} success_pending={success_pending} -> {state.name}"
    )
    return state


def render_setup_scripts(server_config) -> dict[str, bytes]:
    return {
        ROOT_SETUP_SCRIPT: render_script(ROOT_SETUP_SCRIPT, server_config),
        USER_SETUP_SCRIPT: render_script(USER_SETUP_SCRIPT, server_config),
    }


async def prepare(target, scripts: dict[str, bytes]):
    """Upload *scripts* and arm the sentinels.

    The "started" sentinel is what triggers the script on the host, so it is
    written last, after the other two are in place.
    """
    async with target.session() as session:
        for name, content in scripts.items():
            await session.put_file(name, content)
        await session.put_file(NOT_YET_FINISHED, b"")
        await session.put_file(NOT_YET_SUCCEEDED, b"")
        await session.put_file(NOT_YET_STARTED, b"")
    logger.info(f"[SETUP] uploaded {', '.join(scripts)} and armed sentinels")


async def wait_for_done(target, start_timeout=START_TIMEOUT, finish_timeout=FINISH_TIMEOUT, interval=POLL_INTERVAL):
    """Poll until the root setup script has run to completion.

    Raises:
        SetupStartTimeout: neither the process nor a removed "started"
            sentinel was seen within *start_timeout*.
        SetupFinishTimeout: still running after *finish_timeout*.
        SetupIllegallyStopped: process gone, "finished" sentinel remains.
        SetupFailed: process gone, "success" sentinel remains.
    """
    async with target.session() as session:
        waiting_since = time.monotonic()
        state = await observe(session)
        while state == SetupState.NOT_STARTED:
            if time.monotonic() - waiting_since > start_timeout:
                raise SetupStartTimeout(f"root setup did not start within {start_timeout}s", timeout=start_timeout)
            await asyncio.sleep(interval)
            state = await observe(session)
        logger.info("[SETUP] root setup started")

        running_since = time.monotonic()
        while state == SetupState.RUNNING:
            if time.monotonic() - running_since > finish_timeout:
                raise SetupFinishTimeout(f"root setup still running after {finish_timeout}s", timeout=finish_timeout)
            await asyncio.sleep(interval)
            state = await observe(session)

    if state == SetupState.FAILED:
        raise SetupFailed("root setup reported failure; see /var/log/sacloudenv-root-setup.log on the server")
    if state != SetupState.SUCCEEDED:
        raise SetupIllegallyStopped("root setup exited without signaling completion", state=state)
    logger.info("[SETUP] root setup succeeded")


async def run_setup(target, server_config, start_timeout=START_TIMEOUT, finish_timeout=FINISH_TIMEOUT):
    scripts = render_setup_scripts(server_config)
    await prepare(target, scripts)
    await wait_for_done(target, start_timeout=start_timeout, finish_timeout=finish_timeout)
