"""Async subprocess wrapper for terraform, ssh, scp and docker.

Commands run through :func:`run_command`, which never raises for a non-zero
exit status: it returns a :class:`ShellResult` and callers decide whether the
failure is fatal (usually via :func:`check_result`).
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence

from hcloud_config.errors import ExternalToolError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Return code used when the executable is not on PATH (as a shell would).
RC_NOT_FOUND: int = 127

#: Return code used when a command exceeded its timeout.
RC_TIMEOUT: int = 124

_MASK = "***"

# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------


@dataclass
class ShellResult:
    """Outcome of one external command."""

    command: str
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def mask_secrets(text: str, secrets: Iterable[Optional[str]]) -> str:
    """Replace every non-empty secret in *text* with ``***``."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, _MASK)
    return text


def format_command(args: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(arg)) for arg in args)


async def run_command(
    args: Sequence[str],
    *,
    cwd: Optional[str | Path] = None,
    extra_env: Optional[Dict[str, str]] = None,
    stdin: Optional[str] = None,
    timeout: Optional[float] = None,
    secrets: Iterable[Optional[str]] = (),
) -> ShellResult:
    """Run *args* and capture its output.

    *secrets* are masked in the logged command line and in the
    ``command`` of the returned result.
    """
    secrets = list(secrets)
    command = mask_secrets(format_command(args), secrets)
    env = {**os.environ, **extra_env} if extra_env else None
    logger.info("Running: %s", command)

    try:
        proc = await asyncio.create_subprocess_exec(
            *[str(arg) for arg in args],
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd else None,
            env=env,
        )
    except FileNotFoundError:
        return ShellResult(
            command=command,
            returncode=RC_NOT_FOUND,
            stderr=f"{args[0]} not found on PATH",
        )

    try:
        out, err = await asyncio.wait_for(
            proc.communicate(stdin.encode() if stdin is not None else None),
            timeout,
        )
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        logger.warning("Timed out after %ss: %s", timeout, command)
        return ShellResult(
            command=command,
            returncode=RC_TIMEOUT,
            stderr=f"timed out after {timeout}s",
        )

    result = ShellResult(
        command=command,
        returncode=proc.returncode if proc.returncode is not None else 1,
        stdout=mask_secrets(out.decode(errors="replace").strip(), secrets),
        stderr=mask_secrets(err.decode(errors="replace").strip(), secrets),
    )
    if not result.ok:
        logger.debug("rc=%d stderr=%s", result.returncode, result.stderr)
    return result


def check_result(result: ShellResult, action: str) -> ShellResult:
    """Raise :class:`ExternalToolError` unless *result* succeeded."""
    if not result.ok:
        raise ExternalToolError(
            f"{action} failed (rc={result.returncode}): "
            f"{result.stderr or result.stdout or '(no output)'}",
            command=result.command,
            returncode=result.returncode,
            stderr=result.stderr,
        )
    return result
