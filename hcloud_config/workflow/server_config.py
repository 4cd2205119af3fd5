"""``create-server-config``: terraform files, apply and state masking."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Mapping, Optional

from hcloud_config import terraform, ui
from hcloud_config.context import GlobalContext
from hcloud_config.generate.servers import write_server_config
from hcloud_config.state.store import TF_STATE_FILENAME, mask_state_file

logger = logging.getLogger(__name__)


async def create_server_config(
    config_path: Optional[str | Path] = None,
    *,
    output: Optional[str | Path] = None,
    dry_run: bool = False,
    mask: bool = True,
    destroy_on_error: bool = True,
    cwd: Optional[str | Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> List[Path]:
    """Generate the terraform configuration and, unless *dry_run*, apply it."""
    ui.phase("SERVER CONFIG")
    ctx = GlobalContext.build(config_path, output=output, cwd=cwd, env=env)
    ui.detail("config", str(ctx.config_path))
    ui.detail("output", str(ctx.output_dir))

    written = await write_server_config(ctx)
    ui.ok(f"Wrote {len(written)} file(s)")

    if dry_run:
        ui.info("Dry run: terraform apply skipped")
        return written

    ui.phase("TERRAFORM")
    ui.step("terraform init && terraform apply")
    await terraform.apply(ctx.output_dir, ctx.settings, destroy_on_error=destroy_on_error)
    ui.ok("terraform apply succeeded")

    if mask:
        masked = mask_state_file(ctx.output_dir / TF_STATE_FILENAME)
        ui.ok(f"Masked {masked} sensitive attribute(s) in {TF_STATE_FILENAME}")
    return written
