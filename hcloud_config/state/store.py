"""Terraform state file access and masking of sensitive attributes.

The state written by ``terraform apply`` lives at
``<state-dir>/terraform.tfstate``.  After a successful apply every attribute
terraform flags as sensitive is replaced by ``null`` so the file can be kept
as a build artifact.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List

from hcloud_config.errors import ResolutionError

logger = logging.getLogger(__name__)

#: File name terraform uses for local state.
TF_STATE_FILENAME = "terraform.tfstate"


# ---------------------------------------------------------------------------
# Read / write
# ---------------------------------------------------------------------------


def load_tf_state(path: str | Path) -> Dict[str, Any]:
    """Load the terraform state at *path*.

    Raises
    ------
    ResolutionError
        If the file is missing or not valid JSON.
    """
    path = Path(path)
    if not path.is_file():
        raise ResolutionError(
            f'The terraform state "{path}" does not exist. '
            "Run create-server-config first."
        )
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ResolutionError(f'The terraform state "{path}" is not valid JSON: {exc}') from exc


def write_tf_state(path: str | Path, state: Dict[str, Any]) -> Path:
    """Write *state* back to *path* as indented JSON."""
    path = Path(path)
    path.write_text(json.dumps(state, indent=2) + "\n", encoding="utf-8")
    logger.debug("Terraform state written to %s", path)
    return path


# ---------------------------------------------------------------------------
# Masking
# ---------------------------------------------------------------------------


def iter_instances(state: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    for res in state.get("resources") or []:
        for instance in res.get("instances") or []:
            yield instance


def _sensitive_names(instance: Dict[str, Any]) -> List[str]:
    """Attribute names terraform marks as sensitive on *instance*.

    Each entry of ``sensitive_attributes`` is a path (a list of steps);
    the first ``get_attr`` step names the top-level attribute.
    """
    names: List[str] = []
    for path in instance.get("sensitive_attributes") or []:
        steps = path if isinstance(path, list) else [path]
        for step in steps:
            if isinstance(step, dict) and step.get("type") == "get_attr":
                names.append(step["value"])
                break
    return names


def mask_sensitive_attributes(state: Dict[str, Any]) -> int:
    """Set every sensitive attribute in *state* to ``None`` in place.

    Returns the number of attributes masked.
    """
    masked = 0
    for instance in iter_instances(state):
        attributes = instance.get("attributes")
        if not isinstance(attributes, dict):
            continue
        for name in _sensitive_names(instance):
            if attributes.get(name) is not None:
                attributes[name] = None
                masked += 1
    return masked


def mask_state_file(path: str | Path) -> int:
    """Mask sensitive attributes of the state file at *path*.

    A missing state file is not an error (nothing was applied); ``0`` is
    returned.
    """
    path = Path(path)
    if not path.is_file():
        logger.info("No terraform state at %s, nothing to mask", path)
        return 0
    state = load_tf_state(path)
    masked = mask_sensitive_attributes(state)
    write_tf_state(path, state)
    logger.info("Masked %d sensitive attribute(s) in %s", masked, path)
    return masked
