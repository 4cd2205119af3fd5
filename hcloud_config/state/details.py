"""Server details: entity fields merged with terraform instance attributes."""

from __future__ import annotations

from typing import Any, Dict, List

from hcloud_config.config.registry import ResourceRegistry
from hcloud_config.errors import ResolutionError
from hcloud_config.render.strings import resource


def server_details_mapping(
    state: Dict[str, Any],
    registry: ResourceRegistry,
) -> Dict[str, Dict[str, Any]]:
    """Return ``{server name: details}`` for every configured server.

    The ``hcloud_server`` resource is found by its sanitized resource name
    and the instance by ``attributes.name``.  Instance attributes
    (``ipv4_address``, ``id`` ...) take precedence over entity fields.
    """
    resources: List[Dict[str, Any]] = state.get("resources") or []
    details: Dict[str, Dict[str, Any]] = {}
    for server in registry.servers.values():
        res_name = resource(server.name)
        match = next(
            (
                r for r in resources
                if r.get("type", "hcloud_server") == "hcloud_server"
                and r.get("name") == res_name
            ),
            None,
        )
        if match is None:
            raise ResolutionError(
                f'Could not find resource "{res_name}" for server "{server.name}" '
                "in the terraform state."
            )
        instance = next(
            (
                i for i in match.get("instances") or []
                if (i.get("attributes") or {}).get("name") == server.name
            ),
            None,
        )
        if instance is None:
            raise ResolutionError(
                f'Could not find an instance of server "{server.name}" in the terraform state.'
            )
        details[server.name] = {**server.to_details(), **instance["attributes"]}
    return details
