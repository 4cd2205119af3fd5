"""Explicit registry holding every entity parsed from one config file."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, TypeVar

from hcloud_config.config.models import Entity, Server, Service, SSHKey, Volume
from hcloud_config.errors import ConfigValidationError, ResolutionError

E = TypeVar("E", bound=Entity)


@dataclass
class ResourceRegistry:
    """Named collections of entities in config order.

    Names are unique per entity type; adding a second entity of the same
    type and name raises :class:`ConfigValidationError`.
    """

    servers: Dict[str, Server] = field(default_factory=dict)
    services: Dict[str, Service] = field(default_factory=dict)
    ssh_keys: Dict[str, SSHKey] = field(default_factory=dict)
    volumes: Dict[str, Volume] = field(default_factory=dict)

    def _collection(self, entity: Entity) -> Dict[str, Entity]:
        if isinstance(entity, Server):
            return self.servers
        if isinstance(entity, Service):
            return self.services
        if isinstance(entity, SSHKey):
            return self.ssh_keys
        if isinstance(entity, Volume):
            return self.volumes
        raise TypeError(f"Not a config entity: {entity!r}")

    def add(self, entity: E) -> E:
        collection = self._collection(entity)
        if entity.name in collection:
            raise ConfigValidationError(
                f'Duplicate {entity.kind} name "{entity.name}"'
            )
        collection[entity.name] = entity
        return entity

    # ── lookups ──────────────────────────────────────────────────────

    def get_server(self, name: str) -> Optional[Server]:
        return self.servers.get(name)

    def get_service(self, name: str) -> Optional[Service]:
        return self.services.get(name)

    def get_ssh_key(self, name: str) -> Optional[SSHKey]:
        return self.ssh_keys.get(name)

    def get_volume(self, name: str) -> Optional[Volume]:
        return self.volumes.get(name)

    def filter_servers(self, predicate: Callable[[Server], bool]) -> List[Server]:
        return [s for s in self.servers.values() if predicate(s)]

    def filter_services(self, predicate: Callable[[Service], bool]) -> List[Service]:
        return [s for s in self.services.values() if predicate(s)]

    def filter_ssh_keys(self, predicate: Callable[[SSHKey], bool]) -> List[SSHKey]:
        return [k for k in self.ssh_keys.values() if predicate(k)]

    def filter_volumes(self, predicate: Callable[[Volume], bool]) -> List[Volume]:
        return [v for v in self.volumes.values() if predicate(v)]

    # ── relations ────────────────────────────────────────────────────

    def ssh_keys_for(
        self,
        server: Server,
        *,
        private: bool = False,
        public: bool = False,
    ) -> List[SSHKey]:
        """SSH keys referenced by *server*, in config order.

        With ``private`` (or ``public``) only keys carrying that half are
        returned; with both, keys carrying either half.
        """
        keys = []
        for key in self.ssh_keys.values():
            if key.name not in server.ssh_keys:
                continue
            if not private and not public:
                keys.append(key)
            elif (private and key.private_key) or (public and key.public_key):
                keys.append(key)
        return keys

    def services_for(self, server: Server) -> List[Service]:
        """Services referenced by *server*, in config order."""
        return self.filter_services(lambda s: s.name in server.services)

    def volumes_for(self, server: Server) -> List[Volume]:
        """Volumes referenced by *server*, in config order."""
        return self.filter_volumes(lambda v: v.name in server.volumes)

    def volume_owners(self) -> Dict[str, List[str]]:
        """Map every volume name to the servers claiming it."""
        owners: Dict[str, List[str]] = {name: [] for name in self.volumes}
        for server in self.servers.values():
            for volume_name in server.volumes:
                if volume_name in owners and server.name not in owners[volume_name]:
                    owners[volume_name].append(server.name)
        return owners

    def check_references(self) -> None:
        """Raise :class:`ResolutionError` listing every dangling reference."""
        missing: List[str] = []
        for server in self.servers.values():
            for ref, collection, kind in (
                (server.ssh_keys, self.ssh_keys, "ssh-key"),
                (server.services, self.services, "service"),
                (server.volumes, self.volumes, "volume"),
            ):
                for name in ref:
                    if name not in collection:
                        missing.append(
                            f'- server "{server.name}" references unknown {kind} "{name}"'
                        )
        if missing:
            raise ResolutionError(
                "The configuration contains unresolved references:\n" + "\n".join(missing)
            )
