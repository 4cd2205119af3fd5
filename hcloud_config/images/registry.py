"""GitHub container registry (ghcr.io) client for wildcard expansion.

Uses the GitHub REST packages API:

* ``GET /users/{owner}``: ``type == "Organization"`` selects the ``orgs``
  endpoints, anything else the ``users`` endpoints
* ``GET /{kind}/{owner}/packages?package_type=container``
* ``GET /{kind}/{owner}/packages/container/{package}/versions``

List endpoints are paginated with ``page`` / ``per_page``; iteration stops
at the first page shorter than ``per_page``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from hcloud_config.errors import (
    ConfigurationError,
    RegistryError,
    ResolutionError,
    UnsupportedRegistryError,
)
from hcloud_config.images.reference import WILDCARD, ImageReference, glob_match
from hcloud_config.settings import DEFAULT_REGISTRY, PER_PAGE, Settings

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"


class GitHubPackagesClient:
    """Async client for the GitHub packages API.

    Use as an async context manager; an externally supplied
    ``httpx.AsyncClient`` is not closed on exit.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        client: Optional[httpx.AsyncClient] = None,
        per_page: int = PER_PAGE,
        timeout: float = 30.0,
    ) -> None:
        self.settings = settings
        self.per_page = per_page
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=settings.api_url, timeout=timeout)
        self._owner_kinds: Dict[str, str] = {}

    async def __aenter__(self) -> "GitHubPackagesClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        if not self.settings.github_token:
            raise ConfigurationError(
                "Missing GITHUB_TOKEN environment variable (required to expand image wildcards)."
            )
        return {
            "Authorization": f"Bearer {self.settings.github_token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }

    def _url(self, path: str) -> str:
        return f"{self.settings.api_url.rstrip('/')}{path}"

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET *path* and return the decoded JSON body."""
        try:
            resp = await self._client.get(self._url(path), params=params, headers=self._headers())
        except httpx.HTTPError as exc:
            raise RegistryError(f"GET {path} failed: {exc}") from exc
        if resp.status_code >= 400:
            raise RegistryError(
                f"GET {path} returned {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
            )
        return resp.json()

    async def get_all(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Any]:
        """GET every page of the list endpoint *path*."""
        items: List[Any] = []
        page = 1
        while True:
            batch = await self.get(path, {**(params or {}), "page": page, "per_page": self.per_page})
            if not isinstance(batch, list):
                raise RegistryError(f"GET {path} did not return a list")
            items.extend(batch)
            if len(batch) < self.per_page:
                return items
            page += 1

    async def owner_kind(self, owner: str) -> str:
        """``"orgs"`` for organizations, ``"users"`` otherwise."""
        if owner not in self._owner_kinds:
            data = await self.get(f"/users/{owner}")
            self._owner_kinds[owner] = "orgs" if data.get("type") == "Organization" else "users"
        return self._owner_kinds[owner]

    async def list_packages(self, owner: str) -> List[str]:
        kind = await self.owner_kind(owner)
        packages = await self.get_all(
            f"/{kind}/{owner}/packages", {"package_type": "container"}
        )
        names: List[str] = []
        for package in packages:
            name = package.get("name")
            if name and name not in names:
                names.append(name)
        logger.debug("Packages of %s: %s", owner, names)
        return names

    async def list_tags(self, owner: str, package: str) -> List[str]:
        kind = await self.owner_kind(owner)
        versions = await self.get_all(f"/{kind}/{owner}/packages/container/{package}/versions")
        tags: List[str] = []
        for version in versions:
            container = (version.get("metadata") or {}).get("container") or {}
            for tag in container.get("tags") or []:
                if tag not in tags:
                    tags.append(tag)
        return tags


async def resolve_image_references(
    ref: ImageReference,
    client: GitHubPackagesClient,
) -> List[ImageReference]:
    """Expand the wildcards of *ref* into concrete references.

    A reference without wildcards is returned as-is without any request.
    """
    if not ref.has_wildcard:
        return [ref]
    if not ref.url.endswith(DEFAULT_REGISTRY):
        raise UnsupportedRegistryError(
            f'Wildcards are only supported for {DEFAULT_REGISTRY}, got "{ref.reference}"'
        )
    if WILDCARD in ref.org:
        raise ResolutionError(f'Wildcard organizations are not supported: "{ref.reference}"')

    if WILDCARD in ref.repo:
        repos = [p for p in await client.list_packages(ref.org) if glob_match(ref.repo, p)]
    else:
        repos = [ref.repo]

    if WILDCARD not in ref.tag:
        resolved = [ref.with_repo(repo) for repo in repos]
    else:
        tag_lists = await asyncio.gather(*(client.list_tags(ref.org, repo) for repo in repos))
        resolved = [
            ref.with_repo(repo).with_tag(tag)
            for repo, tags in zip(repos, tag_lists)
            for tag in tags
            if glob_match(ref.tag, tag)
        ]
    logger.info("Resolved %s to %d image(s)", ref.reference, len(resolved))
    return resolved
