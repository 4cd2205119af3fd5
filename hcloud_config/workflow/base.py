"""Shared pieces of the three command workflows."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from hcloud_config import ui
from hcloud_config.errors import ExternalToolError, HCloudConfigError
from hcloud_config.shell import ShellResult, check_result

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_TOOL_FAILURE = 2


def check_remote(result: ShellResult, action: str, *, force: bool = False) -> ShellResult:
    """Fail on a non-zero exit unless *force* turns it into a warning."""
    if result.ok or not force:
        return check_result(result, action)
    logger.warning("%s failed (rc=%d), continuing: %s", action, result.returncode, result.stderr)
    ui.warn(f"{action} failed (rc={result.returncode}), continuing because of --force")
    return result


def run_workflow(title: str, factory: Callable[[], Awaitable[object]]) -> int:
    """Run the coroutine built by *factory* and map errors to an exit code."""
    start = time.time()
    try:
        asyncio.run(factory())
    except ExternalToolError as exc:
        ui.error_msg(str(exc))
        if exc.stderr:
            ui.error_panel(exc.command or "stderr", exc.stderr)
        return EXIT_TOOL_FAILURE
    except HCloudConfigError as exc:
        ui.error_msg(str(exc))
        return EXIT_FAILURE
    ui.ok(f"{title} finished in {ui.elapsed_str(time.time() - start)}")
    return EXIT_SUCCESS
