"""Container image references, registry expansion and port resolution."""

from hcloud_config.images.inspect import exposed_ports, inspect_exposed_ports
from hcloud_config.images.ports import (
    PortMapping,
    ProxyRoute,
    merge_ports,
    parse_port,
    parse_proxy,
    resolve_image_ports,
)
from hcloud_config.images.reference import (
    ImageReference,
    glob_match,
    glob_to_regex,
    parse_image_reference,
)
from hcloud_config.images.registry import GitHubPackagesClient, resolve_image_references
from hcloud_config.images.resolver import Image, image_name, resolve_images

__all__ = [
    "GitHubPackagesClient",
    "Image",
    "ImageReference",
    "PortMapping",
    "ProxyRoute",
    "exposed_ports",
    "glob_match",
    "glob_to_regex",
    "image_name",
    "inspect_exposed_ports",
    "merge_ports",
    "parse_image_reference",
    "parse_port",
    "parse_proxy",
    "resolve_image_ports",
    "resolve_image_references",
    "resolve_images",
]
