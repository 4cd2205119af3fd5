"""Template rendering: ``${...}`` interpolation and string helpers."""

from hcloud_config.render.expression import evaluate
from hcloud_config.render.interpolate import (
    RESERVED_KEY,
    Segment,
    render,
    render_config,
    render_macros,
    render_twice,
    render_value,
    split_template,
)
from hcloud_config.render.strings import hostname, indent, resource, trim_lines

__all__ = [
    "RESERVED_KEY",
    "Segment",
    "evaluate",
    "hostname",
    "indent",
    "render",
    "render_config",
    "render_macros",
    "render_twice",
    "render_value",
    "resource",
    "split_template",
    "trim_lines",
]
