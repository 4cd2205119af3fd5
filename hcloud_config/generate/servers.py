"""Terraform files for ssh keys, servers, volumes and volume attachments.

Generation runs in three phases, each awaited as a whole before the next:

1. ssh keys and servers (concurrently)
2. volumes, after checking that each is claimed by exactly one server
3. volume attachments, mounted through a ``remote-exec`` provisioner
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import Dict, List, Optional

from hcloud_config.config.models import Server, SSHKey, Volume
from hcloud_config.config.registry import ResourceRegistry
from hcloud_config.context import GlobalContext
from hcloud_config.errors import ResolutionError
from hcloud_config.render.interpolate import render
from hcloud_config.render.strings import indent, resource, trim_lines

logger = logging.getLogger(__name__)

# ── constants ────────────────────────────────────────────────────────

HCLOUD_PROVIDER_VERSION = "1.44.1"

#: Operating system image of every server.
SERVER_IMAGE = "debian-12"

SSH_DIR_MODE = 0o700
PRIVATE_KEY_MODE = 0o600
PUBLIC_KEY_MODE = 0o644

CLOUD_INIT = """#cloud-config
package_update: true
packages:
  - docker.io
  - docker-compose
  - nginx
runcmd:
  - systemctl enable --now docker
  - systemctl enable --now nginx
"""

# ── templates ────────────────────────────────────────────────────────

PROVIDER_TEMPLATE = r"""terraform {
  required_providers {
    hcloud = {
      source  = "hetznercloud/hcloud"
      version = "${version}"
    }
  }
}

variable "HCLOUD_TOKEN" {
  sensitive = true
}

provider "hcloud" {
  token = var.HCLOUD_TOKEN
}
"""

SSH_KEY_TEMPLATE = r"""variable "sensitive_${resource(ssh_key.name)}_public_key" {
  description = "The public key of the ssh-key ${ssh_key.name}"
  default     = <<EOF
${public_key}
EOF
  sensitive   = true
}

resource "hcloud_ssh_key" "${resource(ssh_key.name)}" {
  name       = "${ssh_key.name}"
  public_key = var.sensitive_${resource(ssh_key.name)}_public_key
}
"""

SERVER_TEMPLATE = r"""resource "hcloud_server" "${resource(server.name)}" {
  name        = "${server.name}"
  server_type = "${server.server_type}"
  image       = "${image}"
  ${f'location    = "{server.location}"' if server.location else ''}
  user_data   = file("./hcloud_server/cloud-init.yml")
  ssh_keys    = [${', '.join(ssh_key_ids)}]

  public_net {
    ipv4_enabled = true
    ipv6_enabled = true
  }
}
"""

VOLUME_TEMPLATE = r"""resource "hcloud_volume" "${resource(volume.name)}" {
  name     = "${volume.name}"
  size     = ${volume.size}
  ${f'location = "{server.location}"' if server.location else ''}
  format   = "ext4"
}
"""

CONNECTION_TEMPLATE = r"""connection {
  type        = "ssh"
  user        = "${ssh_key.user}"
  private_key = file("\${path.module}/.ssh/${ssh_key.name}")
  host        = ${host}
}"""

ATTACHMENT_TEMPLATE = r"""resource "hcloud_volume_attachment" "${resource(server.name)}_${resource(volume.name)}" {
  server_id = hcloud_server.${resource(server.name)}.id
  volume_id = hcloud_volume.${resource(volume.name)}.id

  ${connection}

  provisioner "remote-exec" {
    inline = [
      "mkdir -p ${volume.path}",
      "mount \${hcloud_volume.${resource(volume.name)}.linux_device} ${volume.path}"
    ]
  }
}
"""


# ── helpers ──────────────────────────────────────────────────────────


def clean_output(output_dir: Path, suffix: str = ".tf") -> int:
    """Delete ``*<suffix>`` files directly inside *output_dir*."""
    removed = 0
    for path in output_dir.glob(f"*{suffix}"):
        if path.is_file():
            path.unlink()
            removed += 1
    logger.debug("Removed %d stale %s file(s) from %s", removed, suffix, output_dir)
    return removed


def _write(path: Path, text: str, mode: Optional[int] = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    if mode is not None:
        os.chmod(path, mode)
    return path


async def connection_block(ctx: GlobalContext, server: Server, host: str) -> str:
    """Terraform ``connection`` block using the first private key of *server*."""
    keys = ctx.registry.ssh_keys_for(server, private=True)
    if not keys:
        raise ResolutionError(
            f'Could not find any private SSH key for server "{server.name}".'
        )
    return await render(ctx.bindings(ssh_key=keys[0], host=host), CONNECTION_TEMPLATE)


def check_volume_ownership(registry: ResourceRegistry) -> Dict[str, Server]:
    """Map each volume to its single owner or raise listing every problem."""
    problems: List[str] = []
    owners: Dict[str, Server] = {}
    for volume_name, servers in registry.volume_owners().items():
        if not servers:
            problems.append(f'- volume "{volume_name}" is not attached to any server')
        elif len(servers) > 1:
            problems.append(
                f'- volume "{volume_name}" is attached to multiple servers: '
                + ", ".join(servers)
            )
        else:
            owners[volume_name] = registry.servers[servers[0]]
    if problems:
        raise ResolutionError(
            "Every volume must be attached to exactly one server:\n" + "\n".join(problems)
        )
    return owners


# ── writers ──────────────────────────────────────────────────────────


async def write_provider(ctx: GlobalContext) -> Path:
    text = await render({"version": HCLOUD_PROVIDER_VERSION}, PROVIDER_TEMPLATE)
    return _write(ctx.output_dir / "hcloud_provider.tf", text)


async def write_ssh_key(ctx: GlobalContext, ssh_key: SSHKey) -> List[Path]:
    """Write the key files and, with a public key, its terraform file."""
    bindings = ctx.bindings()
    written: List[Path] = []
    ctx.ssh_dir.mkdir(parents=True, exist_ok=True)
    os.chmod(ctx.ssh_dir, SSH_DIR_MODE)

    if ssh_key.private_key:
        private = await render(bindings, ssh_key.private_key)
        written.append(_write(ctx.ssh_dir / ssh_key.name, private, PRIVATE_KEY_MODE))

    if ssh_key.public_key:
        public = await render(bindings, ssh_key.public_key)
        written.append(_write(ctx.ssh_dir / f"{ssh_key.name}.pub", public, PUBLIC_KEY_MODE))
        text = await render(
            ctx.bindings(ssh_key=ssh_key, public_key=public.strip()), SSH_KEY_TEMPLATE
        )
        written.append(
            _write(ctx.output_dir / f"hcloud_ssh_key_{ssh_key.name}.tf", trim_lines(text))
        )
    return written


async def write_server(ctx: GlobalContext, server: Server) -> Path:
    ssh_key_ids = [
        f"hcloud_ssh_key.{resource(key.name)}.id"
        for key in ctx.registry.ssh_keys_for(server, public=True)
    ]
    text = await render(
        ctx.bindings(server=server, image=SERVER_IMAGE, ssh_key_ids=ssh_key_ids),
        SERVER_TEMPLATE,
    )
    _write(ctx.output_dir / "hcloud_server" / "cloud-init.yml", CLOUD_INIT)
    return _write(ctx.output_dir / f"hcloud_server_{server.name}.tf", trim_lines(text))


async def write_volume(ctx: GlobalContext, volume: Volume, server: Server) -> Path:
    text = await render(ctx.bindings(volume=volume, server=server), VOLUME_TEMPLATE)
    return _write(ctx.output_dir / f"hcloud_volume_{volume.name}.tf", trim_lines(text))


async def write_volume_attachment(
    ctx: GlobalContext, server: Server, volume: Volume
) -> Path:
    host = f"hcloud_server.{resource(server.name)}.ipv4_address"
    connection = indent(await connection_block(ctx, server, host))
    text = await render(
        ctx.bindings(server=server, volume=volume, connection=connection),
        ATTACHMENT_TEMPLATE,
    )
    return _write(
        ctx.output_dir / f"hcloud_volume_attachment_{server.name}_{volume.name}.tf",
        trim_lines(text),
    )


async def write_server_config(ctx: GlobalContext) -> List[Path]:
    """Generate every terraform file of the configuration.

    Returns the written paths.
    """
    registry = ctx.registry
    clean_output(ctx.output_dir)
    written: List[Path] = []
    if ctx.config_path.resolve() != (ctx.output_dir / "hcloud.yml").resolve():
        shutil.copyfile(ctx.config_path, ctx.output_dir / "hcloud.yml")
    written.append(ctx.output_dir / "hcloud.yml")
    written.append(await write_provider(ctx))

    # phase 1
    results = await asyncio.gather(
        *(write_ssh_key(ctx, key) for key in registry.ssh_keys.values()),
        *(write_server(ctx, server) for server in registry.servers.values()),
    )
    for result in results:
        if isinstance(result, list):
            written.extend(result)
        else:
            written.append(result)

    # phase 2
    owners = check_volume_ownership(registry)
    written.extend(
        await asyncio.gather(
            *(
                write_volume(ctx, volume, owners[volume.name])
                for volume in registry.volumes.values()
            )
        )
    )

    # phase 3
    written.extend(
        await asyncio.gather(
            *(
                write_volume_attachment(ctx, owners[volume.name], volume)
                for volume in registry.volumes.values()
            )
        )
    )
    logger.info("Wrote %d file(s) to %s", len(written), ctx.output_dir)
    return written
