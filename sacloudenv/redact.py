"""Secret redaction for log output.

Covers the API tokens from the environment plus anything registered at
runtime: the WireGuard private key from the config file and the disk
password given on the command line.
"""

import logging
import os
import re

_TOKEN_ENV_VARS = (
    "SACLOUD_ACCESS_TOKEN",
    "SACLOUD_SECRET_TOKEN",
)

_MIN_SECRET_LENGTH = 8  # skip short values to avoid false positives

_MASK = "***"

_registered: set[str] = set()

# one alternation over every known secret, rebuilt lazily after changes
_pattern: re.Pattern | None = None
_pattern_built = False


def _known_secrets() -> set[str]:
    values = set(_registered)
    values.update(v for v in (os.environ.get(name, "") for name in _TOKEN_ENV_VARS) if len(v) >= _MIN_SECRET_LENGTH)
    return values


def _get_pattern() -> re.Pattern | None:
    global _pattern, _pattern_built
    if not _pattern_built:
        values = _known_secrets()
        # longest first so a secret never leaves the tail of a longer one behind
        alternatives = "|".join(re.escape(v) for v in sorted(values, key=len, reverse=True))
        _pattern = re.compile(alternatives) if alternatives else None
        _pattern_built = True
    return _pattern


def reset() -> None:
    """Forget registered secrets and re-read the token env vars on next use."""
    global _pattern_built
    _registered.clear()
    _pattern_built = False


def register_secret(value: str) -> None:
    """Redact *value* from now on; values shorter than 8 characters are ignored."""
    global _pattern_built
    if value and len(value) >= _MIN_SECRET_LENGTH and value not in _registered:
        _registered.add(value)
        _pattern_built = False


def redact_secrets(text: str) -> str:
    """Replace known secret values with '***'."""
    pattern = _get_pattern()
    return pattern.sub(_MASK, text) if pattern is not None else text


class SecretRedactingFilter(logging.Filter):
    """Logging filter that masks secrets in the message and its arguments.

    Messages are usually pre-formatted f-strings, but exceptions logged
    directly (``logger.error(e)``) and %-style args are handled too.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        pattern = _get_pattern()
        if pattern is None:
            return True
        record.msg = pattern.sub(_MASK, str(record.msg))
        if isinstance(record.args, dict):
            record.args = {k: pattern.sub(_MASK, v) if isinstance(v, str) else v for k, v in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(pattern.sub(_MASK, a) if isinstance(a, str) else a for a in record.args)
        return True
