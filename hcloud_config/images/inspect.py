"""Image introspection through the local docker CLI."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from hcloud_config.errors import ExternalToolError
from hcloud_config.settings import DEFAULT_REGISTRY, Settings
from hcloud_config.shell import check_result, run_command

logger = logging.getLogger(__name__)


def exposed_ports(inspect_output: str) -> List[str]:
    """Container ports from ``docker inspect`` JSON (``"80/tcp"`` -> ``"80"``)."""
    try:
        data: Any = json.loads(inspect_output)
    except json.JSONDecodeError as exc:
        raise ExternalToolError(f"docker inspect returned invalid JSON: {exc}") from exc
    if not data:
        return []
    config: Dict[str, Any] = (data[0] or {}).get("Config") or {}
    ports: List[str] = []
    for key in config.get("ExposedPorts") or {}:
        port = key.split("/")[0]
        if port not in ports:
            ports.append(port)
    return ports


async def inspect_exposed_ports(reference: str, settings: Settings) -> List[str]:
    """Pull *reference* and return its exposed container ports."""
    if reference.startswith(DEFAULT_REGISTRY) and settings.github_token:
        check_result(
            await run_command(
                ["docker", "login", DEFAULT_REGISTRY, "-u", settings.github_actor,
                 "--password-stdin"],
                stdin=settings.github_token,
                secrets=[settings.github_token],
            ),
            f"docker login {DEFAULT_REGISTRY}",
        )
    check_result(await run_command(["docker", "pull", reference]), f"docker pull {reference}")
    result = check_result(
        await run_command(["docker", "inspect", reference]), f"docker inspect {reference}"
    )
    return exposed_ports(result.stdout)


def make_inspector(settings: Settings):
    """Bind *settings* into an ``async (reference) -> ports`` callable."""

    async def inspector(reference: str) -> List[str]:
        return await inspect_exposed_ports(reference, settings)

    return inspector
