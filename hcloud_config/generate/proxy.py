"""nginx reverse-proxy configuration, one ``nginx.conf`` per server.

Every proxied container port becomes an upstream named
``hostname(image.name + "-" + container)``; the servers running that image
are its backends.  On each server, upstreams are exposed through ``server``
blocks keyed by ``host:proxy_port`` with one ``location`` per path.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from hcloud_config.context import GlobalContext
from hcloud_config.errors import ConflictError
from hcloud_config.images.resolver import Image
from hcloud_config.render.interpolate import render
from hcloud_config.render.strings import hostname, indent, trim_lines

logger = logging.getLogger(__name__)

NGINX_FILENAME = "nginx.conf"

DEFAULT_STRATEGY = "least_conn"

UPSTREAM_TEMPLATE = r"""upstream ${upstream.name} {
  ${'\n  '.join(servers)}
  ${upstream.strategy};
}
"""

SERVER_BLOCK_TEMPLATE = r"""server {
  listen ${listen};
  server_name ${server_name};

  ${locations}
}
"""

LOCATION_TEMPLATE = r"""location ${location.path} {
  proxy_pass http://${location.upstream};
  proxy_set_header Host $host;
  proxy_set_header X-Real-IP $remote_addr;
  proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
  proxy_set_header X-Forwarded-Proto $scheme;
}"""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class Backend:
    """One server running the image behind an upstream."""

    server: str
    address: str
    image: str
    container_port: str
    proxy_port: str
    host_port: Optional[str] = None
    domain: Optional[str] = None
    path: str = "/"

    @property
    def external_host(self) -> str:
        return self.domain or self.address


@dataclass
class Upstream:
    """A group of backends serving the same image port."""

    name: str
    strategy: Optional[str] = None
    backends: List[Backend] = field(default_factory=list)

    def backend_on(self, server_name: str) -> Optional[Backend]:
        return next((b for b in self.backends if b.server == server_name), None)


@dataclass(frozen=True)
class Location:
    host: str
    proxy_port: str
    path: str
    upstream: str

    @property
    def key(self) -> str:
        return f"{self.host}:{self.proxy_port}"


#: ``async (server name, backend) -> host port``
PortLookup = Callable[[str, Backend], Awaitable[str]]


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------


def build_upstreams(
    ctx: GlobalContext,
    images_by_server: Dict[str, List[Image]],
) -> Tuple[Dict[str, Upstream], Dict[str, List[str]]]:
    """Group proxied ports into upstreams.

    Returns ``(upstreams by name, upstream names by server)``.  The first
    proxy route that names a strategy sets it for the upstream; otherwise
    ``least_conn`` is used.
    """
    upstreams: Dict[str, Upstream] = {}
    by_server: Dict[str, List[str]] = {name: [] for name in images_by_server}

    for server_name, images in images_by_server.items():
        server = ctx.registry.servers[server_name]
        for image in images:
            for port in image.ports:
                if not port.proxy_port:
                    continue
                name = hostname(f"{image.name}-{port.container}")
                upstream = upstreams.setdefault(name, Upstream(name=name))
                route = port.route
                if upstream.strategy is None and route is not None and route.strategy:
                    upstream.strategy = route.strategy
                upstream.backends.append(
                    Backend(
                        server=server_name,
                        address=ctx.address_of(server),
                        image=image.name,
                        container_port=port.container,
                        proxy_port=port.proxy_port,
                        host_port=port.host,
                        domain=route.domain if route else None,
                        path=route.path if route else "/",
                    )
                )
                if name not in by_server[server_name]:
                    by_server[server_name].append(name)

    for upstream in upstreams.values():
        if upstream.strategy is None:
            upstream.strategy = DEFAULT_STRATEGY
    return upstreams, by_server


async def resolve_host_ports(upstreams: Dict[str, Upstream], lookup: PortLookup) -> None:
    """Fill in host ports docker assigned at runtime, in place."""
    pending = [
        backend
        for upstream in upstreams.values()
        for backend in upstream.backends
        if not backend.host_port
    ]
    ports = await asyncio.gather(*(lookup(backend.server, backend) for backend in pending))
    for backend, port in zip(pending, ports):
        backend.host_port = port


def group_locations(
    server_name: str,
    upstreams: Dict[str, Upstream],
    upstream_names: List[str],
    *,
    force: bool = False,
) -> Dict[str, List[Location]]:
    """Locations of *server_name* keyed by ``host:proxy_port``.

    A second route to the same ``host:port/path`` raises
    :class:`ConflictError`; with *force* it is logged and dropped.
    """
    hosts: Dict[str, List[Location]] = {}
    for name in upstream_names:
        backend = upstreams[name].backend_on(server_name)
        if backend is None:
            continue
        location = Location(
            host=backend.external_host,
            proxy_port=backend.proxy_port,
            path=backend.path,
            upstream=name,
        )
        existing = hosts.setdefault(location.key, [])
        if any(other.path == location.path for other in existing):
            message = (
                f'Server "{server_name}" has multiple services on the same '
                f'host:port/location: "{location.key}{location.path}".'
            )
            if not force:
                raise ConflictError(message)
            logger.warning("%s Dropping upstream %s.", message, name)
            continue
        existing.append(location)
    return hosts


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


async def render_upstream(upstream: Upstream) -> str:
    servers = [
        f"server {backend.address}:{backend.host_port} max_fails=3 fail_timeout=30s;"
        for backend in upstream.backends
    ]
    return await render({"upstream": upstream, "servers": servers}, UPSTREAM_TEMPLATE)


async def render_server_block(key: str, locations: List[Location]) -> str:
    rendered = [await render({"location": loc}, LOCATION_TEMPLATE) for loc in locations]
    return await render(
        {
            "listen": locations[0].proxy_port,
            "server_name": locations[0].host,
            "locations": indent("\n\n".join(rendered)),
        },
        SERVER_BLOCK_TEMPLATE,
    )


async def render_proxy_config(
    server_name: str,
    upstreams: Dict[str, Upstream],
    upstream_names: List[str],
    *,
    force: bool = False,
) -> str:
    hosts = group_locations(server_name, upstreams, upstream_names, force=force)
    used = {loc.upstream for locations in hosts.values() for loc in locations}
    blocks = [await render_upstream(upstreams[name]) for name in upstream_names if name in used]
    blocks.extend([await render_server_block(key, locs) for key, locs in hosts.items()])
    return trim_lines("\n".join(blocks))


async def write_proxy_config(
    ctx: GlobalContext,
    upstreams: Dict[str, Upstream],
    by_server: Dict[str, List[str]],
    *,
    force: bool = False,
) -> Dict[str, Optional[Path]]:
    """Write or remove ``nginx.conf`` for every server.

    Returns ``{server name: path}``; the path is ``None`` for servers
    without upstreams, whose stale ``nginx.conf`` is deleted.
    """

    async def one(server_name: str) -> Tuple[str, Optional[Path]]:
        path = ctx.server_dir(server_name) / NGINX_FILENAME
        names = by_server.get(server_name) or []
        if not names:
            if path.exists():
                path.unlink()
                logger.info("Removed %s (no upstreams)", path)
            return server_name, None
        text = await render_proxy_config(server_name, upstreams, names, force=force)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        logger.info("Wrote %s", path)
        return server_name, path

    results = await asyncio.gather(*(one(name) for name in ctx.registry.servers))
    return dict(results)
