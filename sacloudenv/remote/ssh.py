"""SSH/SFTP sessions to the provisioned server (asyncssh)."""

import asyncio
import logging
import re
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass

import asyncssh

from sacloudenv.remote.errors import PathExistsButNotFile, PsOutputInvalid, SshConnectError, SshOperationFailed

logger = logging.getLogger(__name__)

CONNECT_BUDGET = 5 * 60
CONNECT_RETRY_INTERVAL = 20
HANDSHAKE_TIMEOUT = 10
TCP_PROBE_TIMEOUT = 5
TCP_PROBE_INTERVAL = 10
KEEPALIVE_INTERVAL = 60

PS_COMMAND = "ps auwx"
PS_HEADER_COLUMNS = 11
# everything after the first ten fields is the command line, spaces included
_PS_LINE = re.compile(r"^(?:\S+\s+){10}(.*)$")


def parse_ps_commands(output: str) -> list[str]:
    """Return the COMMAND column of every process in ``ps auwx`` output.

    Raises:
        PsOutputInvalid: no output, a header other than the 11-column BSD
            layout, or a record that does not have ten leading fields.
    """
    lines = output.splitlines()
    if not lines:
        raise PsOutputInvalid("ps produced no output")
    headers = lines[0].split()
    if len(headers) != PS_HEADER_COLUMNS or headers[-1] != "COMMAND":
        raise PsOutputInvalid(f"unexpected ps header: {lines[0]!r}", header=lines[0])

    commands = []
    for line in lines[1:]:
        if not line.strip():
            continue
        match = _PS_LINE.match(line)
        if match is None:
            raise PsOutputInvalid(f"unparseable ps line: {line!r}", line=line)
        commands.append(match.group(1))
    return commands


async def wait_for_tcp(host, port, deadline=None):
    """Block until a plain TCP connect to host:port succeeds.

    Cheaper than a handshake, so it gates every SSH attempt. With *deadline*
    (a ``time.monotonic()`` value) the probe gives up once it passes.
    """
    while True:
        try:
            _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), TCP_PROBE_TIMEOUT)
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug(f"[SSH] waiting for {host}:{port}: {e!r}")
            if deadline is not None and time.monotonic() > deadline:
                raise SshConnectError(f"{host}:{port} not reachable: {e!r}", host=host, port=port) from e
            await asyncio.sleep(TCP_PROBE_INTERVAL)
            continue
        writer.close()
        return


class Session:
    """One SSH connection plus its SFTP client.

    Paths are relative to the login user's home directory unless absolute.
    """

    def __init__(self, conn, sftp, host, port):
        self.conn = conn
        self.sftp = sftp
        self.host = host
        self.port = port

    @classmethod
    async def connect(cls, host, port, user, key_path, budget=CONNECT_BUDGET, retry_interval=CONNECT_RETRY_INTERVAL):
        """Connect with retry until *budget* seconds have elapsed.

        Raises:
            SshConnectError: carrying the last underlying error message.
        """
        logger.debug(f"[SSH] connecting to {user}@{host}:{port}")
        started = time.monotonic()
        while True:
            await wait_for_tcp(host, port, deadline=started + budget)
            try:
                conn = await asyncssh.connect(
                    host,
                    port=port,
                    username=user,
                    client_keys=[key_path],
                    known_hosts=None,
                    connect_timeout=HANDSHAKE_TIMEOUT,
                    keepalive_interval=KEEPALIVE_INTERVAL,
                )
                break
            except (asyncssh.Error, OSError, asyncio.TimeoutError) as e:
                logger.debug(f"[SSH] handshake with {host}:{port} failed: {e!r}")
                if time.monotonic() - started > budget:
                    raise SshConnectError(str(e), host=host, port=port, user=user) from e
                logger.debug(f"[SSH] retrying in {retry_interval} seconds...")
                await asyncio.sleep(retry_interval)

        try:
            sftp = await conn.start_sftp_client()
        except (asyncssh.Error, OSError) as e:
            conn.close()
            raise SshConnectError(f"sftp subsystem: {e}", host=host, port=port, user=user) from e
        logger.debug(f"[SSH] connected to {host}:{port}")
        return cls(conn, sftp, host, port)

    async def close(self):
        self.sftp.exit()
        self.conn.close()
        await self.conn.wait_closed()

    # ── Files ─────────────────────────────────────────────────────

    async def put_file(self, remote_path, data: bytes):
        """Create or truncate *remote_path* and write *data* to it."""
        logger.debug(f"[SSH] putting {remote_path} ({len(data)} bytes)")
        try:
            async with self.sftp.open(remote_path, "wb") as f:
                await f.write(data)
        except (asyncssh.Error, OSError) as e:
            raise SshOperationFailed(f"put {remote_path}: {e}", path=remote_path) from e

    async def file_exists(self, remote_path) -> bool:
        """True for a regular file, False when absent.

        Raises:
            PathExistsButNotFile: something other than a regular file is there.
        """
        try:
            if not await self.sftp.exists(remote_path):
                return False
            is_file = await self.sftp.isfile(remote_path)
        except (asyncssh.Error, OSError) as e:
            raise SshOperationFailed(f"stat {remote_path}: {e}", path=remote_path) from e
        if not is_file:
            raise PathExistsButNotFile(f"{remote_path} exists but is not a regular file", path=remote_path)
        return True

    async def sync_dir(self, local_dir, remote_dir):
        """Recursively upload *local_dir* to *remote_dir*."""
        logger.debug(f"[SSH] syncing {local_dir} -> {remote_dir}")
        try:
            await self.sftp.put(local_dir, remote_dir, recurse=True, preserve=True)
        except (asyncssh.Error, OSError) as e:
            raise SshOperationFailed(f"sync {local_dir} -> {remote_dir}: {e}", local=local_dir, remote=remote_dir) from e

    # ── Processes ─────────────────────────────────────────────────

    async def run(self, command) -> str:
        try:
            result = await self.conn.run(command, check=True)
        except (asyncssh.Error, OSError) as e:
            raise SshOperationFailed(f"'{command}' failed: {e}", command=command) from e
        return result.stdout or ""

    async def process_exists(self, process_name) -> bool:
        """True when some process command line contains *process_name*."""
        commands = parse_ps_commands(await self.run(PS_COMMAND))
        found = any(process_name in command for command in commands)
        logger.debug(f"[SSH] process {process_name} {'found' if found else 'not found'}")
        return found

    # ── Forwarding ────────────────────────────────────────────────

    async def forward_local_port(self, local_port, remote_port, remote_host="localhost"):
        """Listen on localhost:*local_port* and forward to *remote_host*:*remote_port*.

        Returns the asyncssh listener; ``await listener.wait_closed()`` blocks
        until it is closed.
        """
        try:
            return await self.conn.forward_local_port("localhost", local_port, remote_host, remote_port)
        except (asyncssh.Error, OSError) as e:
            raise SshOperationFailed(
                f"forward localhost:{local_port} -> {remote_host}:{remote_port}: {e}",
                local_port=local_port,
                remote_port=remote_port,
            ) from e


@dataclass(frozen=True)
class RemoteTarget:
    """Where and as whom to connect; sessions are opened per operation."""

    host: str
    port: int
    user: str
    key_path: str

    @asynccontextmanager
    async def session(self):
        session = await Session.connect(self.host, self.port, self.user, self.key_path)
        try:
            yield session
        finally:
            await session.close()
