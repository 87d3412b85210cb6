"""Tests for sacloudenv.redact: API tokens, WireGuard key and disk password in logs."""

import logging

import pytest

from conftest import SERVER_CONFIG
from sacloudenv import redact
from sacloudenv.api.errors import ApiError
from sacloudenv.redact import SecretRedactingFilter, redact_secrets, register_secret

WIREGUARD_KEY = SERVER_CONFIG["wireguard"]["interface"]["private_key"]


@pytest.fixture(autouse=True)
def _no_tokens(monkeypatch):
    for name in ("SACLOUD_ACCESS_TOKEN", "SACLOUD_SECRET_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    redact.reset()
    yield
    redact.reset()


def _record(msg, args=None):
    return logging.LogRecord("sacloudenv", logging.INFO, "", 0, msg, args, None)


# ── redact_secrets ────────────────────────────────────────────────


def test_nothing_registered_is_passthrough():
    assert redact_secrets(f"PrivateKey = {WIREGUARD_KEY}") == f"PrivateKey = {WIREGUARD_KEY}"


def test_api_tokens_from_env(monkeypatch):
    monkeypatch.setenv("SACLOUD_ACCESS_TOKEN", "ak-0123456789abcdef")
    monkeypatch.setenv("SACLOUD_SECRET_TOKEN", "sk-fedcba9876543210")
    redact.reset()

    text = "GET server with ak-0123456789abcdef:sk-fedcba9876543210"
    assert redact_secrets(text) == "GET server with ***:***"


def test_wireguard_key_in_rendered_script():
    register_secret(WIREGUARD_KEY)

    script = f"[Interface]\nPrivateKey = {WIREGUARD_KEY}\nAddress = 10.0.0.2/32\n"
    assert redact_secrets(script) == "[Interface]\nPrivateKey = ***\nAddress = 10.0.0.2/32\n"


def test_short_values_are_not_registered(monkeypatch):
    monkeypatch.setenv("SACLOUD_ACCESS_TOKEN", "short")
    redact.reset()
    register_secret("tiny")
    register_secret("")

    assert redact_secrets("short tiny") == "short tiny"


def test_longer_secret_masked_whole():
    register_secret("correct-horse")
    register_secret("correct-horse-battery")

    assert redact_secrets("pw=correct-horse-battery") == "pw=***"


def test_register_after_first_use_takes_effect():
    assert redact_secrets("pw correct-horse-battery") == "pw correct-horse-battery"
    register_secret("correct-horse-battery")
    assert redact_secrets("pw correct-horse-battery") == "pw ***"


# ── SecretRedactingFilter ─────────────────────────────────────────


def test_filter_masks_formatted_message():
    register_secret(WIREGUARD_KEY)

    record = _record(f"rendering wireguard config with {WIREGUARD_KEY}")
    assert SecretRedactingFilter().filter(record) is True
    assert record.msg == "rendering wireguard config with ***"


def test_filter_masks_exception_logged_directly():
    register_secret("correct-horse-battery")

    record = _record(ApiError("disk create rejected password correct-horse-battery"))
    SecretRedactingFilter().filter(record)
    assert record.getMessage() == "disk create rejected password ***"


def test_filter_masks_args():
    register_secret(WIREGUARD_KEY)

    positional = _record("key: %s (%d)", (WIREGUARD_KEY, 1))
    SecretRedactingFilter().filter(positional)
    assert positional.args == ("***", 1)

    # LogRecord unwraps a single mapping argument into record.args
    named = _record("key: %(key)s", ({"key": WIREGUARD_KEY},))
    SecretRedactingFilter().filter(named)
    assert named.getMessage() == "key: ***"


def test_filter_on_logger_output(caplog):
    register_secret(WIREGUARD_KEY)
    logger = logging.getLogger("sacloudenv.test_redact")
    redacting = SecretRedactingFilter()
    logger.addFilter(redacting)
    try:
        with caplog.at_level(logging.INFO, logger="sacloudenv.test_redact"):
            logger.info(f"PrivateKey = {WIREGUARD_KEY}")
    finally:
        logger.removeFilter(redacting)

    assert caplog.messages == ["PrivateKey = ***"]
