"""CLI entry point for hcloud-config.

Usage::

    hcloud-config create-server-config --config hcloud.yml --output dist
    hcloud-config create-service-config --dry-run
    hcloud-config create-proxy-config --force
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import typer

from hcloud_config import __version__

app = typer.Typer(
    name="hcloud-config",
    help=(
        "Compile hcloud.yml into terraform, docker-compose and nginx "
        "configuration and apply it to Hetzner Cloud."
    ),
    add_completion=False,
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"hcloud-config {__version__}")
        raise typer.Exit()


@app.callback()
def _root_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """Declarative Hetzner Cloud configuration compiler."""


# ── shared options ───────────────────────────────────────────────────────────

_CONFIG = typer.Option(
    None, "--config", "-c", help="Path to hcloud.yml. Default: ./hcloud.yml"
)
_OUTPUT = typer.Option(
    None, "--output", "-o", help="Output directory. Default: ./dist"
)
_STATE_DIR = typer.Option(
    None,
    "--state-dir",
    help="Directory holding terraform.tfstate and .ssh/. Default: the output directory.",
)
_DRY_RUN = typer.Option(
    False, "--dry-run", help="Only generate files; do not run terraform, ssh or docker."
)
_FORCE = typer.Option(
    False, "--force", help="Turn proxy route conflicts and remote command failures into warnings."
)
_DEBUG = typer.Option(False, "--debug", help="Enable debug logging.")


def _setup_logging(debug: bool) -> None:
    if debug:
        logging.basicConfig(level=logging.DEBUG)


# ── commands ─────────────────────────────────────────────────────────────────


@app.command("create-server-config")
def create_server_config(
    config: Optional[str] = _CONFIG,
    output: Optional[str] = _OUTPUT,
    dry_run: bool = _DRY_RUN,
    mask: bool = typer.Option(
        True, "--mask/--no-mask", help="Null sensitive attributes in terraform.tfstate."
    ),
    destroy_on_errors: bool = typer.Option(
        True,
        "--destroy-on-errors/--no-destroy-on-errors",
        help="Run terraform destroy when terraform apply fails.",
    ),
    debug: bool = _DEBUG,
) -> None:
    """Generate terraform files for servers, ssh keys and volumes and apply them.

    Environment variables:
      HCLOUD_TOKEN    Hetzner Cloud API token (passed as TF_VAR_HCLOUD_TOKEN).
    """
    from hcloud_config.workflow import run_workflow
    from hcloud_config.workflow.server_config import create_server_config as workflow

    _setup_logging(debug)
    rc = run_workflow(
        "create-server-config",
        lambda: workflow(
            config,
            output=output,
            dry_run=dry_run,
            mask=mask,
            destroy_on_error=destroy_on_errors,
        ),
    )
    raise typer.Exit(rc)


@app.command("create-service-config")
def create_service_config(
    config: Optional[str] = _CONFIG,
    output: Optional[str] = _OUTPUT,
    state_dir: Optional[str] = _STATE_DIR,
    dry_run: bool = _DRY_RUN,
    force: bool = _FORCE,
    debug: bool = _DEBUG,
) -> None:
    """Generate a docker-compose.yml per server and start the containers.

    Environment variables:
      GITHUB_TOKEN         Token for ghcr.io (wildcards and docker login).
      GITHUB_ACTOR         docker login user (default github-actions).
      GITHUB_REPOSITORY    owner/repo used by short image references.
    """
    from hcloud_config.workflow import run_workflow
    from hcloud_config.workflow.service_config import create_service_config as workflow

    _setup_logging(debug)
    rc = run_workflow(
        "create-service-config",
        lambda: workflow(
            config, output=output, state_dir=state_dir, dry_run=dry_run, force=force
        ),
    )
    raise typer.Exit(rc)


@app.command("create-proxy-config")
def create_proxy_config(
    config: Optional[str] = _CONFIG,
    output: Optional[str] = _OUTPUT,
    state_dir: Optional[str] = _STATE_DIR,
    dry_run: bool = _DRY_RUN,
    force: bool = _FORCE,
    debug: bool = _DEBUG,
) -> None:
    """Generate an nginx.conf per server and reload nginx."""
    from hcloud_config.workflow import run_workflow
    from hcloud_config.workflow.proxy_config import create_proxy_config as workflow

    _setup_logging(debug)
    rc = run_workflow(
        "create-proxy-config",
        lambda: workflow(
            config, output=output, state_dir=state_dir, dry_run=dry_run, force=force
        ),
    )
    raise typer.Exit(rc)


# ── Entry point ──────────────────────────────────────────────────────────────


def main() -> int:
    """Run the CLI and return an exit code."""
    try:
        app()
        return 0
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 0


if __name__ == "__main__":
    sys.exit(main())
