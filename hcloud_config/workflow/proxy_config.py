"""``create-proxy-config``: nginx configs and reload on every server."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from hcloud_config import ui
from hcloud_config.config.models import Server
from hcloud_config.context import GlobalContext
from hcloud_config.generate.proxy import (
    Backend,
    PortLookup,
    build_upstreams,
    resolve_host_ports,
    write_proxy_config,
)
from hcloud_config.images.ports import Inspector
from hcloud_config.images.registry import GitHubPackagesClient
from hcloud_config.images.resolver import Image, resolve_images
from hcloud_config.remote import ssh
from hcloud_config.workflow.base import check_remote

logger = logging.getLogger(__name__)


async def collect_images(
    ctx: GlobalContext,
    server: Server,
    client: GitHubPackagesClient,
    *,
    inspector: Optional[Inspector] = None,
) -> List[Image]:
    """Images of every service on *server*, in config order."""
    groups = await asyncio.gather(
        *(
            resolve_images(ctx, service, server, client, inspector=inspector)
            for service in ctx.registry.services_for(server)
        )
    )
    return [image for group in groups for image in group]


def dry_run_port_lookup() -> PortLookup:
    """Use the container port as host port; nothing is running yet."""

    async def lookup(server_name: str, backend: Backend) -> str:
        logger.info(
            "Dry run: using container port %s as host port of %s on %s",
            backend.container_port,
            backend.image,
            server_name,
        )
        return backend.container_port

    return lookup


def remote_port_lookup(ctx: GlobalContext) -> PortLookup:
    """Ask ``docker-compose port`` on the server for the assigned host port."""

    async def lookup(server_name: str, backend: Backend) -> str:
        target = ssh.target_for(ctx, ctx.registry.servers[server_name])
        return await ssh.compose_port(target, backend.image, backend.container_port)

    return lookup


async def apply_proxy(
    ctx: GlobalContext,
    server: Server,
    path: Optional[Path],
    *,
    force: bool = False,
) -> None:
    """Enable (or, without a config, disable) nginx on *server*."""
    target = await ssh.upload(ctx, server)
    if path is None:
        check_remote(await ssh.disable_nginx(target), f"nginx disable on {server.name}", force=force)
        ui.info(f"{server.name}: no upstreams, default site removed")
        return
    check_remote(await ssh.enable_nginx(target), f"nginx reload on {server.name}", force=force)
    ui.ok(f"{server.name}: nginx reloaded")


async def create_proxy_config(
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
    port_lookup: Optional[PortLookup] = None,
) -> Dict[str, Optional[Path]]:
    """Generate every nginx config and, unless *dry_run*, reload nginx."""
    ui.phase("PROXY CONFIG")
    ctx = GlobalContext.build(
        config_path, output=output, state_dir=state_dir, cwd=cwd, env=env, load_state=True
    )
    servers = list(ctx.registry.servers.values())
    owned = client is None
    client = client or GitHubPackagesClient(ctx.settings)
    try:
        groups = await asyncio.gather(
            *(collect_images(ctx, server, client, inspector=inspector) for server in servers)
        )
    finally:
        if owned:
            await client.aclose()

    upstreams, by_server = build_upstreams(
        ctx, {server.name: images for server, images in zip(servers, groups)}
    )
    ui.ok(f"{len(upstreams)} upstream(s)")

    if port_lookup is None:
        port_lookup = dry_run_port_lookup() if dry_run else remote_port_lookup(ctx)
    await resolve_host_ports(upstreams, port_lookup)
    written = await write_proxy_config(ctx, upstreams, by_server, force=force)
    for name, path in written.items():
        if path:
            ui.ok(f"{name}: {path}")
        else:
            ui.info(f"{name}: no upstreams")

    if dry_run:
        ui.info("Dry run: nginx reload skipped")
        return written

    ui.phase("DEPLOY")
    await asyncio.gather(
        *(apply_proxy(ctx, server, written[server.name], force=force) for server in servers)
    )
    return written
