"""``create-service-config``: docker-compose manifests and ``docker-compose up``."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Mapping, Optional

from hcloud_config import ui
from hcloud_config.context import GlobalContext
from hcloud_config.generate.services import ServerManifest, write_service_config
from hcloud_config.images.ports import Inspector
from hcloud_config.images.registry import GitHubPackagesClient
from hcloud_config.remote import ssh
from hcloud_config.workflow.base import check_remote

logger = logging.getLogger(__name__)


async def apply_manifest(
    ctx: GlobalContext,
    manifest: ServerManifest,
    *,
    force: bool = False,
) -> None:
    """Upload the server folder and start its containers."""
    server = ctx.registry.servers[manifest.server]
    target = await ssh.upload(ctx, server)
    if manifest.needs_registry_login:
        check_remote(
            await ssh.docker_login(target, ctx.settings),
            f"docker login on {server.name}",
            force=force,
        )
    await ssh.wait_for_command(
        target,
        timeout=ctx.settings.ready_timeout,
        interval=ctx.settings.ready_interval,
    )
    check_remote(
        await ssh.compose_up(target), f"docker-compose up on {server.name}", force=force
    )
    ui.ok(f"{server.name}: {len(manifest.images)} container(s) started")


async def create_service_config(
    config_path: Optional[str | Path] = None,
    *,
    output: Optional[str | Path] = None,
    state_dir: Optional[str | Path] = None,
    dry_run: bool = False,
    force: bool = False,
    cwd: Optional[str | Path] = None,
    env: Optional[Mapping[str, str]] = None,
    client: Optional[GitHubPackagesClient] = None,
    inspector: Optional[Inspector] = None,
) -> List[ServerManifest]:
    """Generate every compose manifest and, unless *dry_run*, deploy it."""
    ui.phase("SERVICE CONFIG")
    ctx = GlobalContext.build(
        config_path, output=output, state_dir=state_dir, cwd=cwd, env=env, load_state=True
    )
    owned = client is None
    client = client or GitHubPackagesClient(ctx.settings)
    try:
        manifests = await write_service_config(ctx, client, inspector=inspector)
    finally:
        if owned:
            await client.aclose()

    for manifest in manifests:
        ui.ok(f"{manifest.server}: {len(manifest.images)} image(s) -> {manifest.path}")

    if dry_run:
        ui.info("Dry run: remote deployment skipped")
        return manifests

    ui.phase("DEPLOY")
    await asyncio.gather(*(apply_manifest(ctx, m, force=force) for m in manifests))
    return manifests
