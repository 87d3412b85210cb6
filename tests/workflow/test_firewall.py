"""Tests for the firewall guard: the re-enable must run on every exit path."""

import asyncio
import logging
from unittest.mock import AsyncMock, call, patch

import pytest

from sacloudenv.api.errors import ApiServiceUnavailable
from sacloudenv.api.types import ApplianceId
from sacloudenv.workflow.errors import FirewallRestoreFailed
from sacloudenv.workflow.firewall import INTEGRITY_MARKER, firewall_opened

ROUTER_ID = ApplianceId("50")
LOCAL_IP = "198.51.100.7"


def _guarded(body):
    async def go():
        async with firewall_opened(None, ROUTER_ID, LOCAL_IP):
            await body()

    return go()


def _enabled_flags(mock_apply):
    return [c.kwargs["firewall_enabled"] for c in mock_apply.await_args_list]


async def _noop():
    pass


@patch("sacloudenv.workflow.firewall.apply_vpc_router_config", new_callable=AsyncMock)
def test_firewall_restored_after_body(mock_apply):
    asyncio.run(_guarded(_noop))

    assert mock_apply.await_args_list == [
        call(None, ROUTER_ID, LOCAL_IP, firewall_enabled=False),
        call(None, ROUTER_ID, LOCAL_IP, firewall_enabled=True),
    ]


@patch("sacloudenv.workflow.firewall.apply_vpc_router_config", new_callable=AsyncMock)
def test_firewall_restored_when_body_raises(mock_apply):
    async def body():
        raise RuntimeError("setup blew up")

    with pytest.raises(RuntimeError, match="setup blew up"):
        asyncio.run(_guarded(body))
    assert _enabled_flags(mock_apply) == [False, True]


@patch("sacloudenv.workflow.firewall.apply_vpc_router_config", new_callable=AsyncMock)
def test_firewall_restored_when_disable_fails(mock_apply):
    mock_apply.side_effect = [ApiServiceUnavailable("appliance/50/config"), None]
    body = AsyncMock()

    with pytest.raises(ApiServiceUnavailable):
        asyncio.run(_guarded(body))
    assert _enabled_flags(mock_apply) == [False, True]
    body.assert_not_awaited()


@patch("sacloudenv.workflow.firewall.apply_vpc_router_config", new_callable=AsyncMock)
def test_firewall_restored_on_cancellation(mock_apply):
    async def scenario():
        started = asyncio.Event()

        async def body():
            started.set()
            await asyncio.sleep(3600)

        task = asyncio.create_task(_guarded(body))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
    assert _enabled_flags(mock_apply) == [False, True]


@patch("sacloudenv.workflow.firewall.apply_vpc_router_config", new_callable=AsyncMock)
def test_restore_failure_is_critical(mock_apply, caplog):
    mock_apply.side_effect = [None, ApiServiceUnavailable("appliance/50")]

    with caplog.at_level(logging.CRITICAL, logger="sacloudenv.workflow.firewall"):
        with pytest.raises(FirewallRestoreFailed) as exc_info:
            asyncio.run(_guarded(_noop))

    assert isinstance(exc_info.value.__cause__, ApiServiceUnavailable)
    assert exc_info.value.to_dict()["router_id"] == "50"
    assert INTEGRITY_MARKER in caplog.text


@patch("sacloudenv.workflow.firewall.apply_vpc_router_config", new_callable=AsyncMock)
def test_restore_failure_keeps_body_error_as_context(mock_apply):
    mock_apply.side_effect = [None, ApiServiceUnavailable("appliance/50")]

    async def body():
        raise RuntimeError("setup blew up")

    with pytest.raises(FirewallRestoreFailed) as exc_info:
        asyncio.run(_guarded(body))

    context = exc_info.value.__cause__.__context__
    assert isinstance(context, RuntimeError)
