"""``${...}`` template interpolation.

A template is split into static and dynamic segments.  Dynamic segments are
expressions evaluated by :mod:`hcloud_config.render.expression`; all of them
run concurrently and their rendered values are joined back in order.

Rendering happens in two named passes.  :func:`render_config` substitutes
user and config variables; :func:`render_macros` runs over the output of the
first pass so that values inserted by it (environment entries, proxy strings)
may themselves contain ``${...}``.  :func:`render_twice` composes both.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, List, Mapping

from hcloud_config.errors import (
    ConfigurationError,
    TemplateSyntaxError,
    UndefinedValueError,
)
from hcloud_config.render.expression import evaluate

logger = logging.getLogger(__name__)

#: Context key bound by the engine itself to the whole context mapping.
RESERVED_KEY: str = "ctx"

STATIC: str = "static"
DYNAMIC: str = "dynamic"


@dataclass(frozen=True)
class Segment:
    """One piece of a template: literal text or an expression."""

    kind: str
    value: str

    @property
    def is_dynamic(self) -> bool:
        return self.kind == DYNAMIC


# ── splitting ────────────────────────────────────────────────────────


def split_template(text: str) -> List[Segment]:
    """Split *text* into alternating static and dynamic segments.

    A dynamic segment starts at ``${`` and ends at the matching ``}``;
    nested braces are tracked.  ``\\${`` produces a literal ``${``.

    Raises
    ------
    TemplateSyntaxError
        If an expression is not closed.
    """
    segments: List[Segment] = []
    buffer: List[str] = []
    depth = 0
    index = 0
    length = len(text)

    while index < length:
        char = text[index]

        if depth:
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    segments.append(Segment(DYNAMIC, "".join(buffer)))
                    buffer = []
                    index += 1
                    continue
            buffer.append(char)
            index += 1
            continue

        if text.startswith("${", index):
            if buffer and buffer[-1] == "\\":
                buffer[-1] = "$"
                index += 1
                continue
            if buffer:
                segments.append(Segment(STATIC, "".join(buffer)))
                buffer = []
            depth = 1
            index += 2
            continue

        buffer.append(char)
        index += 1

    if depth:
        raise TemplateSyntaxError(
            f"Invalid template literal. Missing {depth} '}}' in {text!r}"
        )
    if buffer:
        segments.append(Segment(STATIC, "".join(buffer)))
    return segments


# ── value rendering ──────────────────────────────────────────────────


def render_value(value: Any) -> str:
    """Render an evaluated expression value as template text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(render_value(item) for item in value)
    return str(value)


# ── rendering ────────────────────────────────────────────────────────


async def _render_segment(
    segment: Segment,
    namespace: Mapping[str, Any],
    throw_on_undefined: bool,
) -> str:
    if not segment.is_dynamic:
        return segment.value
    value = await evaluate(segment.value, namespace)
    if value is None:
        if throw_on_undefined:
            raise UndefinedValueError(
                f"Variable is undefined: ${{{segment.value.strip()}}}"
            )
        logger.debug("Undefined value rendered empty: %s", segment.value.strip())
    return render_value(value)


async def render(
    context: Mapping[str, Any],
    text: str,
    *,
    throw_on_undefined: bool = True,
) -> str:
    """Render every ``${...}`` expression of *text* against *context*.

    Parameters
    ----------
    context:
        Names visible to expressions.  ``ctx`` is reserved: the engine binds
        it to a read-only view of *context*.
    text:
        Template text.  Text without ``${`` is returned unchanged.
    throw_on_undefined:
        When true an expression evaluating to ``None`` raises
        :class:`UndefinedValueError`; otherwise it renders as ``""``.
    """
    if RESERVED_KEY in context:
        raise ConfigurationError(
            f"'{RESERVED_KEY}' is a reserved template variable and cannot be "
            "used in the context"
        )
    segments = split_template(text)
    if not any(segment.is_dynamic for segment in segments):
        return "".join(segment.value for segment in segments)

    namespace = dict(context)
    namespace[RESERVED_KEY] = MappingProxyType(dict(context))
    parts = await asyncio.gather(
        *(_render_segment(segment, namespace, throw_on_undefined) for segment in segments)
    )
    return "".join(parts)


async def render_config(
    context: Mapping[str, Any],
    template: str,
    *,
    throw_on_undefined: bool = True,
) -> str:
    """First pass: substitute config and user variables into *template*."""
    return await render(context, template, throw_on_undefined=throw_on_undefined)


async def render_macros(
    context: Mapping[str, Any],
    rendered: str,
    *,
    throw_on_undefined: bool = True,
) -> str:
    """Second pass over the output of :func:`render_config`."""
    return await render(context, rendered, throw_on_undefined=throw_on_undefined)


async def render_twice(
    context: Mapping[str, Any],
    template: str,
    *,
    throw_on_undefined: bool = True,
) -> str:
    """Run :func:`render_config` then :func:`render_macros`."""
    first = await render_config(context, template, throw_on_undefined=throw_on_undefined)
    return await render_macros(context, first, throw_on_undefined=throw_on_undefined)
