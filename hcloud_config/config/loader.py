"""Parse ``hcloud.yml`` into a :class:`ResourceRegistry`."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, Tuple

import yaml

from hcloud_config.config.models import Entity, Server, Service, SSHKey, Volume, type_name
from hcloud_config.config.registry import ResourceRegistry
from hcloud_config.errors import ConfigurationError, ConfigValidationError

logger = logging.getLogger(__name__)

_INT_TAG = "tag:yaml.org,2002:int"

#: YAML 1.1 integers minus the base-60 form, so `3000:22` stays a string.
_DECIMAL_INT = re.compile(
    r"""^(?:[-+]?0b[0-1_]+
    |[-+]?0[0-7_]+
    |[-+]?(?:0|[1-9][0-9_]*)
    |[-+]?0x[0-9a-fA-F_]+)$""",
    re.X,
)


class ConfigLoader(yaml.SafeLoader):
    """``yaml.SafeLoader`` that never resolves base-60 integers."""

    yaml_implicit_resolvers = {
        first: [(tag, _DECIMAL_INT if tag == _INT_TAG else regexp) for tag, regexp in resolvers]
        for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
    }


#: Top-level sections in build order.
SECTIONS: Tuple[Tuple[str, Callable[..., Entity]], ...] = (
    ("ssh_keys", SSHKey.build),
    ("servers", Server.build),
    ("volumes", Volume.build),
    ("services", Service.build),
)

#: Sections that must contain at least one entry.
REQUIRED_SECTIONS: Dict[str, str] = {
    "servers": "No servers defined.",
    "ssh_keys": "No SSH keys defined.",
    "services": "No services defined.",
}


def parse_config(text: str) -> ResourceRegistry:
    """Parse YAML *text* into a validated registry."""
    try:
        raw = yaml.load(text, Loader=ConfigLoader) or {}
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigValidationError(
            f"The configuration must be a mapping, got {type_name(raw)}"
        )

    registry = ResourceRegistry()
    for section, factory in SECTIONS:
        entries = raw.get(section) or {}
        if not isinstance(entries, dict):
            raise ConfigValidationError(
                f'Section "{section}" must be a mapping, got {type_name(entries)}'
            )
        for name, options in entries.items():
            registry.add(factory(name, options))

    for section, message in REQUIRED_SECTIONS.items():
        if not getattr(registry, section):
            raise ConfigValidationError(message)

    logger.debug(
        "Parsed config: %d ssh keys, %d servers, %d volumes, %d services",
        len(registry.ssh_keys),
        len(registry.servers),
        len(registry.volumes),
        len(registry.services),
    )
    return registry


def load_config(path: str | Path) -> ResourceRegistry:
    """Read and parse the config file at *path*."""
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f'The configuration file "{path}" does not exist.')
    with open(path, encoding="utf-8") as fh:
        return parse_config(fh.read())
