"""Pydantic models for the entities of ``hcloud.yml``.

Defines the four configuration entities:
- :class:`SSHKey` credentials used by terraform and for remote access
- :class:`Server` a Hetzner Cloud machine
- :class:`Volume` a block volume attached to exactly one server
- :class:`Service` a set of container images with ports and proxy rules

Entities are frozen and strictly typed.  They are created through the
``build(name, options)`` factories, which turn pydantic validation errors
into :class:`~hcloud_config.errors.ConfigValidationError` naming the entity
kind, the entity name, the field and the received type.
"""

from __future__ import annotations

import re
from typing import Any, ClassVar, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from hcloud_config.errors import ConfigValidationError

#: Valid server names (lowercase hostname label, 2-63 characters).
SERVER_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]{0,61}[a-z0-9]$")

MAX_PORT = 65535

_EXPECTED_TYPES: Dict[str, str] = {
    "string_type": "string",
    "list_type": "list",
    "dict_type": "mapping",
    "int_type": "integer",
    "int_from_float": "integer",
    "float_type": "number",
    "bool_type": "boolean",
}


def type_name(value: Any) -> str:
    """Human readable YAML-ish type name of *value*."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "mapping"
    if isinstance(value, (list, tuple)):
        return "list"
    return type(value).__name__


def _describe_errors(kind: str, name: Any, exc: ValidationError) -> str:
    reasons: List[str] = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"])
        error_type = error["type"]
        if error_type == "missing":
            reason = "is required"
        elif error_type == "extra_forbidden":
            reason = "is not a known field"
        elif error_type in _EXPECTED_TYPES:
            reason = (
                f"expected {_EXPECTED_TYPES[error_type]}, "
                f"got {type_name(error.get('input'))}"
            )
        elif error_type == "too_short":
            reason = "must not be empty"
        elif error_type == "value_error":
            reason = str(error.get("ctx", {}).get("error", error["msg"]))
        else:
            reason = error["msg"]
        reasons.append(f'field "{field}" {reason}' if field else reason)
    return f'Invalid {kind} "{name}": ' + "; ".join(reasons)


def _stringify_scalars(value: Any) -> Any:
    """Coerce scalar mapping values to strings (``None`` becomes ``""``)."""
    if not isinstance(value, Mapping):
        return value
    result: Dict[Any, Any] = {}
    for key, item in value.items():
        if item is None:
            item = ""
        elif isinstance(item, bool):
            item = "true" if item else "false"
        elif isinstance(item, (int, float)):
            item = str(item)
        result[str(key) if isinstance(key, (int, float)) else key] = item
    return result


def _check_port_number(value: int) -> int:
    if not 0 < value <= MAX_PORT:
        raise ValueError(
            f"port {value} is out of range; quote port strings such as \"3000:22\" "
            "so YAML does not read them as base-60 numbers"
        )
    return value


# ---------------------------------------------------------------------------
# Base entity
# ---------------------------------------------------------------------------


class Entity(BaseModel):
    """Common behaviour of the four entity types."""

    model_config = ConfigDict(frozen=True, strict=True, extra="forbid")

    #: Entity kind used in messages and registry lookups.
    kind: ClassVar[str] = "entity"

    name: str

    @classmethod
    def build(cls, name: Any, options: Optional[Mapping[str, Any]] = None):
        """Validate *options* and return a frozen entity named *name*."""
        if options is None:
            options = {}
        if not isinstance(options, Mapping):
            raise ConfigValidationError(
                f'Invalid {cls.kind} "{name}": expected mapping, got {type_name(options)}'
            )
        try:
            return cls.model_validate({**options, "name": name})
        except ValidationError as exc:
            raise ConfigValidationError(_describe_errors(cls.kind, name, exc)) from exc


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


class SSHKey(Entity):
    """SSH credentials.  Key contents are templates rendered on write."""

    kind: ClassVar[str] = "ssh-key"

    user: str = "root"
    private_key: Optional[str] = None
    public_key: Optional[str] = None

    @model_validator(mode="after")
    def _require_a_key(self) -> "SSHKey":
        if not self.private_key and not self.public_key:
            raise ValueError("either private_key or public_key must be set")
        return self


class Server(Entity):
    """A Hetzner Cloud server."""

    kind: ClassVar[str] = "server"

    server_type: str
    location: str = ""
    ssh_keys: List[str] = Field(min_length=1)
    services: List[str] = Field(min_length=1)
    volumes: List[str] = Field(default_factory=list)
    ports: List[int] = Field(default_factory=list)
    environment: Dict[str, str] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not SERVER_NAME_PATTERN.match(value):
            raise ValueError(
                f"server name must match {SERVER_NAME_PATTERN.pattern}"
            )
        return value

    @field_validator("ports")
    @classmethod
    def _check_ports(cls, value: List[int]) -> List[int]:
        return [_check_port_number(port) for port in value]

    @field_validator("environment", mode="before")
    @classmethod
    def _coerce_environment(cls, value: Any) -> Any:
        return _stringify_scalars(value)

    def to_details(self) -> Dict[str, Any]:
        """Plain mapping of the server's own fields."""
        return self.model_dump()


class Volume(Entity):
    """A block volume mounted at ``path`` on its owning server."""

    kind: ClassVar[str] = "volume"

    size: float = Field(gt=0)
    path: str


class Service(Entity):
    """A set of container images sharing ports, proxies and environment."""

    kind: ClassVar[str] = "service"

    images: List[str] = Field(min_length=1)
    ports: List[str] = Field(default_factory=list)
    proxies: List[str] = Field(default_factory=list)
    environment: Dict[str, str] = Field(default_factory=dict)
    volumes: List[str] = Field(default_factory=list)

    @field_validator("ports", mode="before")
    @classmethod
    def _coerce_ports(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [
                str(_check_port_number(item))
                if isinstance(item, int) and not isinstance(item, bool)
                else item
                for item in value
            ]
        return value

    @field_validator("environment", mode="before")
    @classmethod
    def _coerce_environment(cls, value: Any) -> Any:
        return _stringify_scalars(value)
