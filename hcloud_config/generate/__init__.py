"""Artifact generators: terraform, docker-compose and nginx."""

from hcloud_config.generate.proxy import (
    Backend,
    Location,
    Upstream,
    build_upstreams,
    group_locations,
    render_proxy_config,
    resolve_host_ports,
    write_proxy_config,
)
from hcloud_config.generate.servers import check_volume_ownership, write_server_config
from hcloud_config.generate.services import (
    ServerManifest,
    check_host_ports,
    merged_environment,
    write_service_config,
)

__all__ = [
    "Backend",
    "Location",
    "ServerManifest",
    "Upstream",
    "build_upstreams",
    "check_host_ports",
    "check_volume_ownership",
    "group_locations",
    "merged_environment",
    "render_proxy_config",
    "resolve_host_ports",
    "write_proxy_config",
    "write_server_config",
    "write_service_config",
]
