"""End-to-end workflows behind the CLI commands."""

from hcloud_config.workflow.base import (
    EXIT_FAILURE,
    EXIT_SUCCESS,
    EXIT_TOOL_FAILURE,
    check_remote,
    run_workflow,
)
from hcloud_config.workflow.proxy_config import create_proxy_config
from hcloud_config.workflow.server_config import create_server_config
from hcloud_config.workflow.service_config import create_service_config

__all__ = [
    "EXIT_FAILURE",
    "EXIT_SUCCESS",
    "EXIT_TOOL_FAILURE",
    "check_remote",
    "create_proxy_config",
    "create_server_config",
    "create_service_config",
    "run_workflow",
]
