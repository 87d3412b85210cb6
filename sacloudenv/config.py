"""Configuration loading: YAML file for the server setup, env vars for credentials."""

import logging
import os
from dataclasses import dataclass, field, replace

import yaml

from sacloudenv.errors import ConfigError
from sacloudenv.redact import register_secret

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"
DEFAULT_PUBLIC_IP_URL = "https://api.ipify.org"

ENV_ACCESS_TOKEN = "SACLOUD_ACCESS_TOKEN"
ENV_SECRET_TOKEN = "SACLOUD_SECRET_TOKEN"
ENV_ZONE = "SACLOUD_ZONE"


@dataclass(frozen=True)
class EnvConfig:
    """Everything a run needs, built once at startup and passed explicitly."""

    access_token: str
    secret_token: str
    zone: str
    server: dict = field(default_factory=dict)
    public_ip_url: str = DEFAULT_PUBLIC_IP_URL


def _expand_path(path: str) -> str:
    """Expand user home directory and environment variables in path."""
    return os.path.expanduser(os.path.expandvars(path))


def load_config(config_path: str = DEFAULT_CONFIG_PATH, environ=None) -> EnvConfig:
    """Load configuration from a YAML file and the process environment.

    Expected YAML layout::

        server:
          packages: [git, tmux]
          git: {user_name: ..., user_email: ...}
          wireguard:
            interface: {private_key: ..., address: [...], dns: [...]}
            peer: {public_key: ..., endpoint: ...}
        public_ip_url: https://api.ipify.org   # optional

    Raises:
        ConfigError: file missing/unparseable or a required value absent.
    """
    environ = os.environ if environ is None else environ
    path = _expand_path(config_path)
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigError(f"Config file '{path}' not found.", path=path) from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML config: {e}", path=path) from e

    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping.", path=path)

    server = raw.get("server") or {}
    validate_server_config(server)
    server = {**server, "packages": server.get("packages") or []}
    register_secret(str(server["wireguard"]["interface"]["private_key"]))

    credentials = load_credentials(environ)
    logger.debug(f"Loaded config from {path} (zone={credentials.zone})")
    return replace(credentials, server=server, public_ip_url=raw.get("public_ip_url", DEFAULT_PUBLIC_IP_URL))


def load_credentials(environ=None) -> EnvConfig:
    """Build an EnvConfig from the environment alone (no server section)."""
    environ = os.environ if environ is None else environ
    missing = [name for name in (ENV_ACCESS_TOKEN, ENV_SECRET_TOKEN, ENV_ZONE) if not environ.get(name)]
    if missing:
        raise ConfigError(f"Missing environment variable(s): {', '.join(missing)}", missing=missing)
    return EnvConfig(
        access_token=environ[ENV_ACCESS_TOKEN],
        secret_token=environ[ENV_SECRET_TOKEN],
        zone=environ[ENV_ZONE],
    )


def validate_server_config(server: dict) -> None:
    """Check the keys the setup scripts reference are present."""
    if not isinstance(server, dict):
        raise ConfigError("'server' section must be a mapping.")

    required = [
        ("wireguard", "interface", "private_key"),
        ("wireguard", "interface", "address"),
        ("wireguard", "interface", "dns"),
        ("wireguard", "peer", "public_key"),
        ("wireguard", "peer", "endpoint"),
        ("git", "user_name"),
        ("git", "user_email"),
    ]
    for keys in required:
        node = server
        for key in keys:
            if not isinstance(node, dict) or key not in node:
                dotted = ".".join(("server",) + keys)
                raise ConfigError(f"Missing '{dotted}' in config.", key=dotted)
            node = node[key]

    packages = server.get("packages", [])
    if not isinstance(packages, list):
        raise ConfigError("'server.packages' must be a list.", key="server.packages")
