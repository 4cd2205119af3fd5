"""String helpers shared by templates and generators."""

from __future__ import annotations

import re
from typing import List

_NON_HOSTNAME = re.compile(r"[^a-zA-Z0-9]")


def _sanitize(text: str, separator: str) -> str:
    value = _NON_HOSTNAME.sub(separator, str(text))
    double = separator * 2
    while double in value:
        value = value.replace(double, separator)
    return value.strip(separator).lower()


def hostname(text: str) -> str:
    """Sanitize *text* into a lowercase ``[a-z0-9-]`` identifier.

    >>> hostname("My_App.v2")
    'my-app-v2'
    """
    return _sanitize(text, "-")


def resource(text: str) -> str:
    """Sanitize *text* into a lowercase ``[a-z0-9_]`` Terraform resource name.

    >>> resource("web-01")
    'web_01'
    """
    return _sanitize(text, "_")


def trim_lines(text: str) -> str:
    """Drop blank lines left behind by empty template blocks.

    A blank line directly after a line starting with ``}`` is kept so that
    top-level blocks stay visually separated.  The result always ends with a
    single newline.
    """
    lines = text.split("\n")
    kept: List[str] = []
    for index, line in enumerate(lines):
        if line.strip():
            kept.append(line)
            continue
        previous = lines[index - 1] if index > 0 else ""
        if index != len(lines) - 1 and previous.startswith("}"):
            kept.append(line)
    return "\n".join(kept) + "\n"


def indent(text: str, spaces: int = 2) -> str:
    """Indent every line of *text* but the first by *spaces*."""
    return text.replace("\n", "\n" + " " * spaces)
