"""Terraform CLI wrapper: ``init``, ``apply`` and teardown on failure.

Terraform runs in the output directory, which holds the generated ``*.tf``
files.  The Hetzner Cloud token is passed as ``TF_VAR_HCLOUD_TOKEN``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from hcloud_config.errors import ConfigurationError, ExternalToolError
from hcloud_config.settings import Settings
from hcloud_config.shell import ShellResult, check_result, run_command

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TERRAFORM: str = "terraform"

INIT_ARGS: List[str] = ["init", "-input=false"]
APPLY_ARGS: List[str] = ["apply", "-auto-approve", "-input=false"]
DESTROY_ARGS: List[str] = ["destroy", "-auto-approve", "-input=false"]


def terraform_env(settings: Settings) -> Dict[str, str]:
    """Environment overrides for terraform invocations."""
    if not settings.hcloud_token:
        raise ConfigurationError(
            "Missing HCLOUD_TOKEN environment variable (or TF_VAR_HCLOUD_TOKEN)."
        )
    return {"TF_VAR_HCLOUD_TOKEN": settings.hcloud_token}


async def _terraform(
    args: List[str],
    output_dir: Path,
    settings: Settings,
    *,
    timeout: Optional[float] = None,
) -> ShellResult:
    return await run_command(
        [TERRAFORM, *args],
        cwd=output_dir,
        extra_env=terraform_env(settings),
        timeout=timeout,
        secrets=[settings.hcloud_token],
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def init(output_dir: Path, settings: Settings) -> ShellResult:
    return check_result(await _terraform(INIT_ARGS, output_dir, settings), "terraform init")


async def destroy(output_dir: Path, settings: Settings) -> ShellResult:
    result = await _terraform(DESTROY_ARGS, output_dir, settings)
    if result.ok:
        logger.info("terraform destroy completed in %s", output_dir)
    else:
        logger.error("terraform destroy failed: %s", result.stderr or result.stdout)
    return result


async def apply(
    output_dir: Path,
    settings: Settings,
    *,
    destroy_on_error: bool = True,
) -> ShellResult:
    """Run ``terraform init`` and ``terraform apply``.

    When apply fails and *destroy_on_error* is set, ``terraform destroy``
    runs before the failure is re-raised as :class:`ExternalToolError`.
    """
    await init(output_dir, settings)
    result = await _terraform(APPLY_ARGS, output_dir, settings)
    if result.ok:
        logger.info("terraform apply completed in %s", output_dir)
        return result

    logger.error("terraform apply failed (rc=%d)", result.returncode)
    if destroy_on_error:
        logger.warning("Destroying partially created resources")
        await destroy(output_dir, settings)
    raise ExternalToolError(
        f"terraform apply failed (rc={result.returncode}): "
        f"{result.stderr or result.stdout or '(no output)'}",
        command=result.command,
        returncode=result.returncode,
        stderr=result.stderr,
    )
