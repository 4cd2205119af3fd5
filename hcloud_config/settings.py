"""Runtime settings resolved from the environment.

Environment variables::

    GITHUB_TOKEN                    Registry API token (wildcards, docker login).
    GITHUB_ACTOR                    docker login user (default github-actions).
    GITHUB_REPOSITORY               ``owner/repo`` used for short image references.
    GITHUB_REPOSITORY_OWNER         Fallback owner for short image references.
    GITHUB_API_URL                  Registry API base URL.
    HCLOUD_TOKEN                    Passed to terraform as TF_VAR_HCLOUD_TOKEN.
    HCLOUD_CONFIG_READY_TIMEOUT     Seconds to wait for docker-compose on a server.
    HCLOUD_CONFIG_READY_INTERVAL    Seconds between readiness polls.
    HCLOUD_CONFIG_SSH_TIMEOUT       Timeout in seconds for a single ssh/scp call.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

#: Registry host that supports wildcard expansion.
DEFAULT_REGISTRY: str = "ghcr.io"

#: Base URL of the GitHub REST API.
DEFAULT_API_URL: str = "https://api.github.com"

#: Page size used when listing packages and versions.
PER_PAGE: int = 30


@dataclass(frozen=True)
class Settings:
    """Immutable runtime settings.

    Attributes:
        github_token: Token for the GitHub packages API and ``docker login``.
        github_actor: User name for ``docker login ghcr.io``.
        github_repository: ``owner/repo`` of the current repository.
        github_owner: Explicit owner, used when the repository is not set.
        api_url: GitHub REST API base URL.
        hcloud_token: Hetzner Cloud API token for terraform.
        ready_timeout: Upper bound for the docker-compose readiness wait.
        ready_interval: Seconds between readiness polls.
        ssh_timeout: Timeout for a single ssh/scp invocation.
    """

    github_token: Optional[str] = None
    github_actor: str = "github-actions"
    github_repository: Optional[str] = None
    github_owner: Optional[str] = None
    api_url: str = DEFAULT_API_URL
    hcloud_token: Optional[str] = None
    ready_timeout: float = 300.0
    ready_interval: float = 2.0
    ssh_timeout: float = 60.0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Create settings from *env* (defaults to ``os.environ``)."""
        env = os.environ if env is None else env
        return cls(
            github_token=env.get("GITHUB_TOKEN") or None,
            github_actor=env.get("GITHUB_ACTOR") or cls.github_actor,
            github_repository=env.get("GITHUB_REPOSITORY") or None,
            github_owner=env.get("GITHUB_REPOSITORY_OWNER") or None,
            api_url=env.get("GITHUB_API_URL") or cls.api_url,
            hcloud_token=env.get("TF_VAR_HCLOUD_TOKEN") or env.get("HCLOUD_TOKEN") or None,
            ready_timeout=float(
                env.get("HCLOUD_CONFIG_READY_TIMEOUT", cls.ready_timeout)
            ),
            ready_interval=float(
                env.get("HCLOUD_CONFIG_READY_INTERVAL", cls.ready_interval)
            ),
            ssh_timeout=float(env.get("HCLOUD_CONFIG_SSH_TIMEOUT", cls.ssh_timeout)),
        )

    def default_image_owner(self) -> Tuple[Optional[str], Optional[str]]:
        """Return ``(org, repo)`` used by short image references.

        ``GITHUB_REPOSITORY=acme/shop`` yields ``("acme", "shop")``.
        """
        org: Optional[str] = None
        repo: Optional[str] = None
        if self.github_repository and "/" in self.github_repository:
            org, repo = self.github_repository.split("/", 1)
        return (org or self.github_owner), repo
