"""Remote application over ssh/scp."""

from hcloud_config.remote.ssh import (
    SSHTarget,
    compose_port,
    compose_up,
    disable_nginx,
    docker_login,
    enable_nginx,
    run_remote,
    target_for,
    upload,
    wait_for_command,
)

__all__ = [
    "SSHTarget",
    "compose_port",
    "compose_up",
    "disable_nginx",
    "docker_login",
    "enable_nginx",
    "run_remote",
    "target_for",
    "upload",
    "wait_for_command",
]
