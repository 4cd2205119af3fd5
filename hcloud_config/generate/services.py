"""docker-compose manifests, one per server."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from hcloud_config.config.models import Server, Service
from hcloud_config.context import GlobalContext
from hcloud_config.errors import ConflictError
from hcloud_config.images.ports import Inspector
from hcloud_config.images.registry import GitHubPackagesClient
from hcloud_config.images.resolver import Image, resolve_images
from hcloud_config.render.interpolate import render, render_twice
from hcloud_config.render.strings import indent, trim_lines
from hcloud_config.settings import DEFAULT_REGISTRY

logger = logging.getLogger(__name__)

COMPOSE_FILENAME = "docker-compose.yml"

COMPOSE_TEMPLATE = r"""version: '3'
services:
  ${services}
"""

FRAGMENT_TEMPLATE = r"""${image.name}:
  image: ${image.reference}
  ${'ports:' if ports else ''}
    ${'\n    '.join(ports)}
  ${'volumes:' if volumes else ''}
    ${'\n    '.join(volumes)}
  ${'environment:' if environment else ''}
    ${'\n    '.join(environment)}
"""


@dataclass
class ServerManifest:
    """The compose manifest generated for one server."""

    server: str
    path: Path
    images: List[Image] = field(default_factory=list)

    @property
    def needs_registry_login(self) -> bool:
        return any(image.url == DEFAULT_REGISTRY for image in self.images)


def _quote(value: str) -> str:
    return '"' + value.replace('"', '\\"') + '"'


def merged_environment(server: Server, service: Service) -> Dict[str, str]:
    """Server environment overridden by service environment."""
    return {**server.environment, **service.environment}


def check_host_ports(server_name: str, images: List[Image]) -> None:
    """Raise :class:`ConflictError` if two images claim the same host port."""
    claims: Dict[str, List[str]] = {}
    for image in images:
        for port in image.ports:
            if port.host:
                names = claims.setdefault(port.host, [])
                if image.name not in names:
                    names.append(image.name)
    conflicts = [
        f'The host port "{host}" is used by multiple images on server "{server_name}":\n'
        + "\n".join(f"- {name}" for name in names)
        for host, names in claims.items()
        if len(names) > 1
    ]
    if conflicts:
        raise ConflictError("\n".join(conflicts))


async def render_fragment(
    ctx: GlobalContext,
    image: Image,
    service: Service,
    server: Server,
) -> str:
    """Compose service entry of *image*, rendered twice."""
    details = ctx.details_for(server)
    bindings = ctx.bindings(
        image=image,
        server=details,
        service=service,
        ports=["- " + _quote(port.compose_entry) for port in image.ports],
        volumes=["- " + _quote(volume) for volume in service.volumes],
        environment=[
            f"{key}: {_quote(value)}"
            for key, value in merged_environment(server, service).items()
        ],
    )
    return trim_lines(await render_twice(bindings, FRAGMENT_TEMPLATE))


async def write_server_manifest(
    ctx: GlobalContext,
    server: Server,
    client: GitHubPackagesClient,
    *,
    inspector: Optional[Inspector] = None,
) -> ServerManifest:
    services = ctx.registry.services_for(server)
    per_service = await asyncio.gather(
        *(resolve_images(ctx, service, server, client, inspector=inspector) for service in services)
    )
    check_host_ports(server.name, [image for images in per_service for image in images])

    fragments = await asyncio.gather(
        *(
            render_fragment(ctx, image, service, server)
            for service, images in zip(services, per_service)
            for image in images
        )
    )
    body = "\n".join(fragment.rstrip("\n") for fragment in fragments)
    text = await render({"services": indent(body)}, COMPOSE_TEMPLATE)

    path = ctx.server_dir(server.name) / COMPOSE_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    manifest = ServerManifest(
        server=server.name,
        path=path,
        images=[image for images in per_service for image in images],
    )
    logger.info("Wrote %s (%d image(s))", path, len(manifest.images))
    return manifest


async def write_service_config(
    ctx: GlobalContext,
    client: GitHubPackagesClient,
    *,
    inspector: Optional[Inspector] = None,
) -> List[ServerManifest]:
    """Write the compose manifest of every server."""
    return list(
        await asyncio.gather(
            *(
                write_server_manifest(ctx, server, client, inspector=inspector)
                for server in ctx.registry.servers.values()
            )
        )
    )
