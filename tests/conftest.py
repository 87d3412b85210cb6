"""Shared pytest fixtures: an in-memory provider behind httpx.MockTransport."""

import asyncio
import json
import os
import subprocess
import sys
from contextlib import asynccontextmanager
from urllib.parse import unquote

import httpx
import pytest

from sacloudenv.api import ApiClient
from sacloudenv.config import EnvConfig

PROJECT_ROOT = os.path.normpath(os.path.join(os.path.dirname(__file__), ".."))
BASE_URL = "https://api.test/cloud/zone/tk1v/api/cloud/1.1/"
BASE_PATH = "/cloud/zone/tk1v/api/cloud/1.1/"

ROUTER_GLOBAL_IP = "203.0.113.10"
ARCHIVE_TAG = "ubuntu-22.04-latest"

KINDS = {
    "server": ("Server", "Servers"),
    "disk": ("Disk", "Disks"),
    "sshkey": ("SSHKey", "SSHKeys"),
    "switch": ("Switch", "Switches"),
    "appliance": ("Appliance", "Appliances"),
    "archive": ("Archive", "Archives"),
    "note": ("Note", "Notes"),
}

SERVER_CONFIG = {
    "packages": ["tmux", "htop"],
    "git": {"user_name": "Dev User", "user_email": "dev@example.com"},
    "wireguard": {
        "interface": {
            "private_key": "cHJpdmF0ZS1rZXktbWF0ZXJpYWwtZm9yLXRlc3Rz",
            "address": ["10.0.0.2/32"],
            "dns": ["1.1.1.1"],
        },
        "peer": {"public_key": "cGVlci1wdWJsaWMta2V5", "endpoint": "vpn.example.com"},
    },
}


class FakeSacloud:
    """Stateful stand-in for the provider API.

    Resources live in ``self.store[path][id]``. Like the real API, the
    ``Name`` search filter is a partial match. Every request is appended to
    ``self.calls`` as ``(method, path)`` so tests can assert on ordering.
    Power and availability changes take effect immediately.
    """

    def __init__(self, page_size=None):
        self.store = {path: {} for path in KINDS}
        self.calls = []
        self.switch_appliances = {}
        self.switch_servers = {}
        self.page_size = page_size
        self._next_id = 113000000000
        self.add("archive", {"Name": "Ubuntu Server 22.04", "Tags": [ARCHIVE_TAG], "Availability": "available"})

    # ── state helpers ─────────────────────────────────────────────

    def new_id(self):
        self._next_id += 1
        return str(self._next_id)

    def add(self, path, fields):
        resource_id = fields.get("ID") or self.new_id()
        resource = {"ID": resource_id, **fields}
        self.store[path][resource_id] = resource
        return resource

    def find(self, path, name):
        return [r for r in self.store[path].values() if r.get("Name") == name]

    def mutating_calls(self):
        return [(m, p) for m, p in self.calls if m != "GET"]

    # ── transport ─────────────────────────────────────────────────

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path[len(BASE_PATH):]
        method = request.method
        self.calls.append((method, path))
        body = json.loads(request.content) if request.content else None
        parts = path.split("/")

        if method == "GET" and len(parts) == 1:
            query = json.loads(unquote(request.url.query.decode())) if request.url.query else {}
            return self._search(parts[0], list(self.store[parts[0]].values()), query)
        if method == "GET" and len(parts) == 3 and parts[0] == "switch":
            query = json.loads(unquote(request.url.query.decode())) if request.url.query else {}
            connected = self.switch_servers if parts[2] == "server" else self.switch_appliances
            ids = connected.get(parts[1], [])
            items = [self.store[parts[2]][i] for i in ids if i in self.store[parts[2]]]
            return self._search(parts[2], items, query)
        if method == "POST" and len(parts) == 1:
            return self._create(parts[0], body)

        kind, resource_id = parts[0], parts[1]
        resource = self.store[kind].get(resource_id)
        if resource is None:
            return httpx.Response(404, json={"is_fatal": True, "error_code": "not_found"})
        single = KINDS[kind][0]

        if len(parts) == 2:
            if method == "GET":
                return httpx.Response(200, json={single: resource, "is_ok": True})
            if method == "DELETE":
                del self.store[kind][resource_id]
                return httpx.Response(200, json={single: resource, "is_ok": True})
            if method == "PUT":
                update = (body or {}).get(single, {})
                resource.update(update)
                return httpx.Response(200, json={single: resource, "is_ok": True, "Success": True})
        if parts[2] == "power":
            resource["Instance"] = {"Status": "up" if method == "PUT" else "down"}
            return httpx.Response(202, json={"is_ok": True, "Success": "Accepted"})
        if parts[2] == "config" and method == "PUT":
            return httpx.Response(200, json={"is_ok": True, "Success": True})
        if parts[2] == "interface" and method == "PUT":
            self.switch_appliances.setdefault(parts[6], []).append(resource_id)
            return httpx.Response(200, json={"is_ok": True})
        return httpx.Response(405, json={"error_code": "method_not_allowed"})

    def _search(self, kind, items, query):
        plural = KINDS[kind][1]
        flt = query.get("Filter") or {}
        if "Name" in flt:
            items = [r for r in items if any(n in (r.get("Name") or "") for n in flt["Name"])]
        if "Tags" in flt:
            items = [r for r in items if set(flt["Tags"]) <= set(r.get("Tags") or [])]
        start = query.get("From", 0)
        count = self.page_size or query.get("Count", 50)
        page = items[start:start + count]
        return httpx.Response(200, json={"Total": len(items), "From": start, "Count": len(page), plural: page})

    def _create(self, kind, body):
        single = KINDS[kind][0]
        fields = dict(body[single])
        fields["Availability"] = "available"
        if kind in ("server", "appliance"):
            fields["Instance"] = {"Status": "down"}
        if kind == "appliance":
            fields["Interfaces"] = [{"IPAddress": ROUTER_GLOBAL_IP}]
        if kind == "disk":
            fields["Config"] = body.get("Config")
        resource = self.add(kind, fields)
        if kind == "server":
            for ref in fields.get("ConnectedSwitches") or []:
                self.switch_servers.setdefault(ref["ID"], []).append(resource["ID"])
        return httpx.Response(201, json={single: resource, "is_ok": True, "Success": True})


@pytest.fixture
def fake_sacloud():
    return FakeSacloud()


def make_client(handler, poll_interval=0):
    return ApiClient(
        "tk1v",
        "access-token-for-tests",
        "secret-token-for-tests",
        base_url=BASE_URL,
        transport=httpx.MockTransport(handler),
        poll_interval=poll_interval,
    )


def run_with_client(handler, fn):
    """Run ``fn(client)`` on a fresh client inside its own event loop."""

    async def _go():
        async with make_client(handler) as client:
            return await fn(client)

    return asyncio.run(_go())


@pytest.fixture
def env_config():
    return EnvConfig(
        access_token="access-token-for-tests",
        secret_token="secret-token-for-tests",
        zone="tk1v",
        server=SERVER_CONFIG,
        public_ip_url="https://ip.test/",
    )


# ── Fake remote host ──────────────────────────────────────────────


class FakeSession:
    """In-memory remote home directory with a scripted process table."""

    def __init__(self, host):
        self.host = host

    async def put_file(self, path, data):
        self.host.files[path] = data
        self.host.writes.append(path)

    async def file_exists(self, path):
        return path in self.host.files

    async def process_exists(self, name):
        self.host.polls += 1
        return self.host.tick(name)


class FakeHost:
    """*script* is a list of callables run on each process probe.

    Each step receives the host and returns whether the process is running;
    steps can remove sentinel files to emulate the remote script.
    """

    def __init__(self, script=None):
        self.files = {}
        self.writes = []
        self.polls = 0
        self.sessions = 0
        self.script = list(script or [])

    def tick(self, name):
        if self.script:
            step = self.script.pop(0)
            return step(self)
        return False

    @asynccontextmanager
    async def session(self):
        self.sessions += 1
        yield FakeSession(self)


@pytest.fixture(scope="session")
def run_cli():
    """Return a callable that invokes the sacloudenv CLI as a subprocess."""

    def _run(*args, env=None):
        result = subprocess.run(
            [sys.executable, "-m", "sacloudenv.sacloudenv", *args],
            capture_output=True,
            text=True,
            cwd=PROJECT_ROOT,
            env=env,
        )
        return result.returncode, result.stdout, result.stderr

    return _run
