"""Remote operations on provisioned servers over ``ssh`` / ``scp``.

All remote commands go through the system ``ssh`` client using the first
private key of the server, with host key checking disabled (servers are
freshly created and their host keys are unknown).
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from hcloud_config.config.models import Server
from hcloud_config.context import GlobalContext
from hcloud_config.errors import ExternalToolError, ResolutionError
from hcloud_config.settings import DEFAULT_REGISTRY, Settings
from hcloud_config.shell import ShellResult, check_result, run_command

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Remote directory the per-server folder is uploaded to.
REMOTE_ROOT: str = "/root/"

#: Probe run until docker-compose is installed by cloud-init.
COMPOSE_PROBE: str = "docker-compose --version"

SSH_OPTIONS: List[str] = ["-o", "StrictHostKeyChecking=no", "-o", "BatchMode=yes"]

NGINX_SITE: str = "/etc/nginx/sites-enabled/default"


# ---------------------------------------------------------------------------
# Target
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SSHTarget:
    """Connection parameters for one server."""

    server: str
    host: str
    user: str
    key_file: Path
    timeout: float = 60.0

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.host}"

    def ssh_args(self, command: str) -> List[str]:
        return ["ssh", "-i", str(self.key_file), *SSH_OPTIONS, self.destination, command]

    def scp_args(self, source: Path, remote_path: str) -> List[str]:
        return [
            "scp", "-i", str(self.key_file), *SSH_OPTIONS,
            str(source), f"{self.destination}:{remote_path}",
        ]


def target_for(ctx: GlobalContext, server: Server) -> SSHTarget:
    """Build the :class:`SSHTarget` of *server* from the context."""
    keys = ctx.registry.ssh_keys_for(server, private=True)
    if not keys:
        raise ResolutionError(
            f'Could not find any private SSH key for server "{server.name}".'
        )
    key = keys[0]
    return SSHTarget(
        server=server.name,
        host=ctx.address_of(server),
        user=key.user,
        key_file=ctx.ssh_dir / key.name,
        timeout=ctx.settings.ssh_timeout,
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def run_remote(
    target: SSHTarget,
    command: str,
    *,
    stdin: Optional[str] = None,
    secrets: Optional[List[Optional[str]]] = None,
) -> ShellResult:
    return await run_command(
        target.ssh_args(command),
        stdin=stdin,
        timeout=target.timeout,
        secrets=secrets or (),
    )


async def upload(ctx: GlobalContext, server: Server) -> SSHTarget:
    """Copy ``<output>/hcloud_server/<name>`` to ``/root/`` on *server*."""
    target = target_for(ctx, server)
    source = ctx.server_dir(server.name)
    if not source.is_dir():
        logger.info("Nothing to upload for server %s", server.name)
        return target

    created: List[str] = []
    for path in sorted(p for p in source.rglob("*") if p.is_file()):
        relative = path.relative_to(source)
        parent = relative.parent.as_posix()
        if parent != "." and parent not in created:
            check_result(
                await run_remote(target, f"mkdir -p {REMOTE_ROOT}{parent}"),
                f"mkdir {parent} on {server.name}",
            )
            created.append(parent)
        check_result(
            await run_command(
                target.scp_args(path, f"{REMOTE_ROOT}{relative.as_posix()}"),
                timeout=target.timeout,
            ),
            f"upload of {relative} to {server.name}",
        )
    logger.info("Uploaded %s to %s:%s", source, target.host, REMOTE_ROOT)
    return target


async def wait_for_command(
    target: SSHTarget,
    probe: str = COMPOSE_PROBE,
    *,
    timeout: float = 300.0,
    interval: float = 2.0,
    _sleep_fn: Any = None,
    _clock_fn: Any = None,
) -> int:
    """Poll *probe* on *target* until it succeeds or *timeout* elapses.

    Returns the number of attempts.  The *_sleep_fn* / *_clock_fn*
    parameters are for test injection.

    Raises
    ------
    ExternalToolError
        When the probe has not succeeded within *timeout* seconds.
    """
    sleep = _sleep_fn or asyncio.sleep
    clock = _clock_fn or time.monotonic
    start = clock()
    attempts = 0

    while True:
        attempts += 1
        result = await run_remote(target, probe)
        if result.ok:
            logger.info("%s ready on %s after %d attempt(s)", probe, target.server, attempts)
            return attempts
        elapsed = clock() - start
        if elapsed >= timeout:
            raise ExternalToolError(
                f'"{probe}" did not succeed on server "{target.server}" '
                f"within {timeout:.0f}s ({attempts} attempts)",
                command=result.command,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        logger.debug(
            "Waiting for %s on %s (%.0fs elapsed)", probe, target.server, elapsed
        )
        await sleep(interval)


async def docker_login(target: SSHTarget, settings: Settings) -> ShellResult:
    """Log the remote docker daemon into ghcr.io (password via stdin)."""
    if not settings.github_token:
        raise ResolutionError(
            f'Server "{target.server}" pulls from {DEFAULT_REGISTRY} '
            "but GITHUB_TOKEN is not set."
        )
    return await run_remote(
        target,
        f"docker login {DEFAULT_REGISTRY} -u {settings.github_actor} --password-stdin",
        stdin=settings.github_token,
        secrets=[settings.github_token],
    )


async def compose_up(target: SSHTarget) -> ShellResult:
    return await run_remote(target, f"cd {REMOTE_ROOT} && docker-compose up -d")


async def compose_port(target: SSHTarget, service_name: str, container_port: str) -> str:
    """Host port docker assigned to *container_port* of *service_name*."""
    result = check_result(
        await run_remote(
            target,
            f"cd {REMOTE_ROOT} && docker-compose port {service_name} {container_port}",
        ),
        f"docker-compose port on {target.server}",
    )
    binding = result.stdout.strip().splitlines()[-1] if result.stdout.strip() else ""
    port = binding.rsplit(":", 1)[-1]
    if not port.isdigit():
        raise ResolutionError(
            f'Could not determine the host port of {service_name}:{container_port} '
            f'on server "{target.server}" (got {binding!r}).'
        )
    return port


async def enable_nginx(target: SSHTarget) -> ShellResult:
    return await run_remote(
        target, f"cp {REMOTE_ROOT}nginx.conf {NGINX_SITE} && nginx -s reload"
    )


async def disable_nginx(target: SSHTarget) -> ShellResult:
    return await run_remote(target, f"rm -f {NGINX_SITE} && nginx -s reload")
