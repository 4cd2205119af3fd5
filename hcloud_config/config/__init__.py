"""Configuration entities, registry and loading."""

from hcloud_config.config.loader import load_config, parse_config
from hcloud_config.config.models import (
    SERVER_NAME_PATTERN,
    Entity,
    Server,
    Service,
    SSHKey,
    Volume,
)
from hcloud_config.config.registry import ResourceRegistry

__all__ = [
    "SERVER_NAME_PATTERN",
    "Entity",
    "ResourceRegistry",
    "Server",
    "Service",
    "SSHKey",
    "Volume",
    "load_config",
    "parse_config",
]
