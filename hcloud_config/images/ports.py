"""Port and reverse-proxy shorthand.

Port strings (``Service.ports``)::

    "8080"              proxy 8080 -> container 8080, host port assigned by docker
    "80:8080"           proxy 80   -> container 8080
    "80:4000:8080"      proxy 80   -> host 4000 -> container 8080
    "80:80:8080"        proxy port equals host port: no explicit host port and
                        no proxy hop, served directly

Proxy strings (``Service.proxies``)::

    [strategy://]domain[:ports][/path]

where ``ports`` follows the same 1/2/3 field rule.  A bare domain proxies
port 80 to container port 80.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from hcloud_config.errors import ConfigValidationError, ResolutionError
from hcloud_config.images.inspect import make_inspector
from hcloud_config.render.interpolate import render

logger = logging.getLogger(__name__)

DEFAULT_PROXY_PORT = "80"
DEFAULT_PATH = "/"


@dataclass(frozen=True)
class ProxyRoute:
    """A parsed proxy string."""

    domain: str
    proxy_port: Optional[str]
    container_port: Optional[str]
    host_port: Optional[str] = None
    strategy: Optional[str] = None
    path: str = DEFAULT_PATH


@dataclass(frozen=True)
class PortMapping:
    """One container port and how it is exposed.

    ``host=None`` lets docker assign the host port; ``proxy_port=None``
    means the port is not published through the reverse proxy.
    """

    container: str
    proxy_port: Optional[str] = None
    host: Optional[str] = None
    route: Optional[ProxyRoute] = None

    @property
    def compose_entry(self) -> str:
        """``host:container`` (or just ``container``) for docker-compose."""
        return f"{self.host}:{self.container}" if self.host else self.container


def _split_fields(text: str, source: str) -> Tuple[Optional[str], Optional[str], str]:
    """Split ``a[:b[:c]]`` into ``(proxy, host, container)``."""
    fields = [f.strip() for f in text.split(":")]
    if len(fields) > 3 or any(not f for f in fields):
        raise ConfigValidationError(f'Invalid port configuration "{source}"')
    if len(fields) == 3:
        return fields[0], fields[1], fields[2]
    if len(fields) == 2:
        return fields[0], None, fields[1]
    return fields[0], None, fields[0]


def parse_port(text: Any) -> PortMapping:
    """Parse a ``Service.ports`` entry."""
    if isinstance(text, int) and not isinstance(text, bool):
        text = str(text)
    if not isinstance(text, str) or not text.strip():
        raise ConfigValidationError(f'Invalid port configuration "{text}"')
    proxy, host, container = _split_fields(text.strip(), text)
    if host is not None and proxy == host:
        return PortMapping(container=container)
    return PortMapping(container=container, proxy_port=proxy, host=host)


def parse_proxy(text: str) -> ProxyRoute:
    """Parse a ``Service.proxies`` entry (already rendered)."""
    if not isinstance(text, str) or not text.strip():
        raise ConfigValidationError(f'Invalid proxy configuration "{text}"')
    rest = text.strip()

    strategy: Optional[str] = None
    if "://" in rest:
        strategy, rest = rest.split("://", 1)
        strategy = strategy or None

    path = DEFAULT_PATH
    if "/" in rest:
        rest, tail = rest.split("/", 1)
        path = "/" + tail

    if ":" in rest:
        domain, ports = rest.split(":", 1)
        proxy, host, container = _split_fields(ports, text)
    else:
        domain, proxy, host, container = rest, DEFAULT_PROXY_PORT, None, DEFAULT_PROXY_PORT

    if not domain:
        raise ConfigValidationError(f'Invalid proxy configuration "{text}": missing domain')
    return ProxyRoute(
        domain=domain,
        proxy_port=proxy,
        container_port=container,
        host_port=host,
        strategy=strategy,
        path=path,
    )


def merge_ports(static: List[PortMapping], routes: List[ProxyRoute]) -> List[PortMapping]:
    """Attach *routes* to the mapping with the same container port.

    A matching mapping takes the route's host and proxy port when given;
    a route without a match becomes a new mapping.
    """
    ports = list(static)
    for route in routes:
        for index, port in enumerate(ports):
            if port.container == route.container_port:
                ports[index] = replace(
                    port,
                    host=route.host_port or port.host,
                    proxy_port=route.proxy_port or port.proxy_port,
                    route=route,
                )
                break
        else:
            ports.append(
                PortMapping(
                    container=route.container_port or DEFAULT_PROXY_PORT,
                    proxy_port=route.proxy_port,
                    host=route.host_port,
                    route=route,
                )
            )
    return ports


#: ``async (reference) -> [container port, ...]``
Inspector = Callable[[str], Awaitable[List[str]]]


async def resolve_image_ports(
    ctx: Any,
    service: Any,
    image: Any,
    server_details: Dict[str, Any],
    *,
    inspector: Optional[Inspector] = None,
) -> List[PortMapping]:
    """Ports of one image of *service* on one server.

    Static ports and proxies are merged; proxy strings are rendered first
    with ``image``, ``server`` and ``service`` bound.  Without either, the
    image is introspected and every exposed port is proxied as-is.
    """
    static = [parse_port(entry) for entry in service.ports]
    routes: List[ProxyRoute] = []
    if service.proxies:
        bindings = ctx.bindings(image=image, server=server_details, service=service)
        for entry in service.proxies:
            routes.append(parse_proxy(await render(bindings, entry)))

    ports = merge_ports(static, routes)
    if ports:
        return ports

    if inspector is None:
        inspector = make_inspector(ctx.settings)
    exposed = await inspector(image.reference)
    if not exposed:
        raise ResolutionError(
            f'No ports found for image "{image.reference}" of service "{service.name}": '
            "declare ports or proxies, or EXPOSE a port in the image."
        )
    logger.debug("Introspected ports of %s: %s", image.reference, exposed)
    return [PortMapping(container=port, proxy_port=port) for port in exposed]
