"""Compact container image references.

Accepted forms::

    [url/]org/repo[:tag]    docker.io/nginxdemos/hello:latest
    repo:tag                shop:v1      (org from the current repository)
    tag                     latest       (org and repo from the current repository)

The url defaults to ``ghcr.io`` and the tag to ``latest``.  Any of ``repo``
and ``tag`` may contain ``*`` wildcards, expanded against the registry.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Optional

from hcloud_config.config.models import type_name
from hcloud_config.errors import ConfigValidationError, ResolutionError
from hcloud_config.settings import DEFAULT_REGISTRY

DEFAULT_TAG = "latest"
WILDCARD = "*"


@dataclass(frozen=True)
class ImageReference:
    """One ``url/org/repo:tag`` tuple."""

    url: str
    org: str
    repo: str
    tag: str

    @property
    def reference(self) -> str:
        return f"{self.url}/{self.org}/{self.repo}:{self.tag}"

    @property
    def has_wildcard(self) -> bool:
        return WILDCARD in self.repo or WILDCARD in self.tag

    def with_repo(self, repo: str) -> "ImageReference":
        return replace(self, repo=repo)

    def with_tag(self, tag: str) -> "ImageReference":
        return replace(self, tag=tag)

    def __str__(self) -> str:
        return self.reference


def glob_to_regex(pattern: str) -> "re.Pattern[str]":
    """Compile a ``*`` glob into an anchored regular expression."""
    return re.compile("^" + ".*".join(re.escape(part) for part in pattern.split(WILDCARD)) + "$")


def glob_match(pattern: str, value: str) -> bool:
    return glob_to_regex(pattern).match(value) is not None


def parse_image_reference(
    text: str,
    *,
    default_org: Optional[str] = None,
    default_repo: Optional[str] = None,
    default_url: str = DEFAULT_REGISTRY,
) -> ImageReference:
    """Parse *text* into an :class:`ImageReference`.

    A ``:`` only separates the tag when it follows the last ``/``, so
    registry hosts with ports (``localhost:5000/org/app``) keep their port.

    Raises
    ------
    ConfigValidationError
        If *text* is not a string or is empty once ``*`` and ``:`` are removed.
    ResolutionError
        If a short form needs a default org or repo that is not known.
    """
    if not isinstance(text, str):
        raise ConfigValidationError(
            f"Invalid image reference: expected string, got {type_name(text)}"
        )
    text = text.strip()
    if not text.replace(WILDCARD, "").replace(":", "").strip():
        raise ConfigValidationError(f"Invalid image reference {text!r}: it is empty")

    path, tag = text, ""
    colon = text.rfind(":")
    if colon > text.rfind("/"):
        path, tag = text[:colon], text[colon + 1:]

    url = default_url
    if "/" in path:
        parts = path.split("/")
        org, repo = parts[-2], parts[-1]
        if len(parts) > 2:
            url = "/".join(parts[:-2])
        if not org or not repo:
            raise ConfigValidationError(
                f"Invalid image reference {text!r}: empty organization or repository"
            )
    elif colon > -1:
        org, repo = default_org or "", path or default_repo or ""
    else:
        org, repo, tag = default_org or "", default_repo or "", path

    if not org:
        raise ResolutionError(
            f"Cannot resolve the organization of image {text!r}: "
            "set GITHUB_REPOSITORY or GITHUB_REPOSITORY_OWNER"
        )
    if not repo:
        raise ResolutionError(
            f"Cannot resolve the repository of image {text!r}: set GITHUB_REPOSITORY"
        )
    return ImageReference(url=url, org=org, repo=repo, tag=tag or DEFAULT_TAG)
