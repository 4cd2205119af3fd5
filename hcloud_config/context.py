"""Global context threaded through every generator and workflow.

:class:`GlobalContext` bundles the resolved paths, the environment, the
settings, the parsed :class:`ResourceRegistry` and, for the service and
proxy commands, the server details read from the terraform state.

Path resolution:
1. ``config_path``: explicit argument, else ``<cwd>/hcloud.yml``
2. ``output_dir``: explicit argument, else ``<cwd>/dist``
3. ``state_dir``: explicit argument, else ``output_dir``
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from hcloud_config.config.loader import load_config
from hcloud_config.config.models import Server
from hcloud_config.config.registry import ResourceRegistry
from hcloud_config.errors import ConfigurationError, ResolutionError
from hcloud_config.render.strings import hostname, resource
from hcloud_config.settings import Settings
from hcloud_config.state.details import server_details_mapping
from hcloud_config.state.store import TF_STATE_FILENAME, load_tf_state

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "hcloud.yml"
DEFAULT_OUTPUT_DIRNAME = "dist"


def _resolve(path: Optional[str | Path], cwd: Path, default: Path) -> Path:
    if path is None or str(path) == "":
        return default
    path = Path(path).expanduser()
    return path if path.is_absolute() else cwd / path


@dataclass
class GlobalContext:
    """Read-mostly state shared by one command invocation."""

    cwd: Path
    config_path: Path
    output_dir: Path
    state_dir: Path
    registry: ResourceRegistry
    settings: Settings = field(default_factory=Settings)
    env: Mapping[str, str] = field(default_factory=dict)
    server_details: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        config_path: Optional[str | Path] = None,
        *,
        output: Optional[str | Path] = None,
        state_dir: Optional[str | Path] = None,
        cwd: Optional[str | Path] = None,
        env: Optional[Mapping[str, str]] = None,
        load_state: bool = False,
    ) -> "GlobalContext":
        """Resolve paths, load the config and optionally the server details."""
        cwd_path = Path(cwd) if cwd else Path.cwd()
        env = dict(os.environ if env is None else env)
        config = _resolve(config_path, cwd_path, cwd_path / DEFAULT_CONFIG_FILENAME)
        output_dir = _resolve(output, cwd_path, cwd_path / DEFAULT_OUTPUT_DIRNAME)
        state = _resolve(state_dir, cwd_path, output_dir)

        registry = load_config(config)
        registry.check_references()
        output_dir.mkdir(parents=True, exist_ok=True)

        ctx = cls(
            cwd=cwd_path,
            config_path=config,
            output_dir=output_dir,
            state_dir=state,
            registry=registry,
            settings=Settings.from_env(env),
            env=env,
        )
        if load_state:
            ctx.server_details = server_details_mapping(
                load_tf_state(ctx.tf_state_path), registry
            )
        logger.debug(
            "Context: config=%s output=%s state=%s", config, output_dir, state
        )
        return ctx

    # ── paths ────────────────────────────────────────────────────────

    @property
    def input_dir(self) -> Path:
        """Directory containing the config file."""
        return self.config_path.parent

    @property
    def tf_state_path(self) -> Path:
        return self.state_dir / TF_STATE_FILENAME

    @property
    def ssh_dir(self) -> Path:
        """Directory holding the rendered SSH keys."""
        return self.state_dir / ".ssh"

    def server_dir(self, server_name: str) -> Path:
        """Per-server upload folder ``<output>/hcloud_server/<name>``."""
        return self.output_dir / "hcloud_server" / server_name

    # ── template helpers ─────────────────────────────────────────────

    def file(self, filepath: str) -> str:
        """Read *filepath*: absolute, else relative to the config, else cwd."""
        path = Path(filepath).expanduser()
        candidates = [path] if path.is_absolute() else [self.input_dir / path, self.cwd / path]
        for candidate in candidates:
            if candidate.is_file():
                return candidate.read_text(encoding="utf-8")
        raise ConfigurationError(f'The file "{filepath}" does not exist.')

    def bindings(self, **extra: Any) -> Dict[str, Any]:
        """Names visible to every template, plus *extra*."""
        names: Dict[str, Any] = {
            "env": MappingProxyType(dict(self.env)),
            "file": self.file,
            "hostname": hostname,
            "resource": resource,
        }
        names.update(extra)
        return names

    # ── server details ───────────────────────────────────────────────

    def details_for(self, server: Server) -> Dict[str, Any]:
        """Details of *server*, falling back to its own fields without state."""
        if server.name in self.server_details:
            return self.server_details[server.name]
        return server.to_details()

    def address_of(self, server: Server) -> str:
        """IPv4 address of *server* from the terraform state."""
        address = self.details_for(server).get("ipv4_address")
        if not address:
            raise ResolutionError(
                f'No ipv4_address known for server "{server.name}". '
                "Is the terraform state up to date?"
            )
        return address
