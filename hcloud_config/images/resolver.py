"""Resolve the images of a service on a server."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from hcloud_config.config.models import Server, Service
from hcloud_config.images.ports import Inspector, PortMapping, resolve_image_ports
from hcloud_config.images.reference import ImageReference, parse_image_reference
from hcloud_config.images.registry import GitHubPackagesClient, resolve_image_references

_INVALID_NAME = re.compile(r"[^a-z0-9-]")


def image_name(service_name: str, ref: ImageReference) -> str:
    """Compose service name ``service-url-org-repo-tag``, sanitized."""
    raw = f"{service_name}-{ref.url}-{ref.org}-{ref.repo}-{ref.tag}".lower()
    name = _INVALID_NAME.sub("-", raw)
    while "--" in name:
        name = name.replace("--", "-")
    return name.strip("-")


@dataclass
class Image:
    """One concrete image of a service, as deployed on one server."""

    service: str
    url: str
    org: str
    repo: str
    tag: str
    name: str
    ports: List[PortMapping] = field(default_factory=list)

    @classmethod
    def from_reference(cls, service_name: str, ref: ImageReference) -> "Image":
        return cls(
            service=service_name,
            url=ref.url,
            org=ref.org,
            repo=ref.repo,
            tag=ref.tag,
            name=image_name(service_name, ref),
        )

    @property
    def reference(self) -> str:
        return f"{self.url}/{self.org}/{self.repo}:{self.tag}"

    @property
    def version(self) -> str:
        return self.tag


async def resolve_images(
    ctx: Any,
    service: Service,
    server: Server,
    client: GitHubPackagesClient,
    *,
    inspector: Optional[Inspector] = None,
) -> List[Image]:
    """Expand every image reference of *service* and resolve its ports."""
    details: Dict[str, Any] = ctx.details_for(server)
    default_org, default_repo = ctx.settings.default_image_owner()
    refs = [
        parse_image_reference(text, default_org=default_org, default_repo=default_repo)
        for text in service.images
    ]
    expanded = await asyncio.gather(*(resolve_image_references(ref, client) for ref in refs))
    images = [Image.from_reference(service.name, ref) for group in expanded for ref in group]

    port_lists = await asyncio.gather(
        *(
            resolve_image_ports(ctx, service, image, details, inspector=inspector)
            for image in images
        )
    )
    for image, ports in zip(images, port_lists):
        image.ports = ports
    return images
