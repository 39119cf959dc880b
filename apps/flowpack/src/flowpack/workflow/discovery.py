"""Connector discovery: find the external connectors a workflow calls.

Connectors are recorded in a plain ``{logical name: API resource id}`` map.
The first discovery of a logical name wins; later sightings are ignored.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping

from .schema import (
    CONNECTOR_TYPES,
    ActionNode,
    Host,
    TriggerNode,
    iter_nested_action_maps,
    walk_actions,
)

logger = logging.getLogger(__name__)

API_RESOURCE_PREFIX = "/providers/Microsoft.PowerApps/apis/"
SHAREPOINT_CONNECTOR = "shared_sharepointonline"

CONNECTION_NAME_PATTERN = re.compile(
    r"@?parameters\('\$connections'\)\['([^']+)'\]\['connectionId'\]"
)


def is_connector_bound(node: TriggerNode | ActionNode) -> bool:
    return node.type in CONNECTOR_TYPES


def _register(connectors: dict[str, str], name: str, resource_id: str, source: str) -> None:
    if name in connectors:
        return
    connectors[name] = resource_id
    logger.debug("Discovered connector %s (%s) from %s", name, resource_id, source)


def extract_connector(host: Host | None, connectors: dict[str, str]) -> None:
    """Record the connector named by a host descriptor, if any."""
    if host is None:
        return

    if host.connection is not None and host.connection.name:
        match = CONNECTION_NAME_PATTERN.search(host.connection.name)
        if match:
            name = match.group(1)
            _register(connectors, name, API_RESOURCE_PREFIX + name, "connection expression")
        else:
            logger.warning(
                "Could not parse logical connection name from expression %r; "
                "connector map may be incomplete",
                host.connection.name,
            )
    elif host.api is not None and host.api.id:
        name = host.api.id.rstrip("/").split("/")[-1]
        _register(connectors, name, host.api.id, "api.id")
    elif host.connection_name and host.api_id:
        _register(connectors, host.connection_name, host.api_id, "connectionName/apiId")

    # SharePoint is always registered when its API is referenced, whichever
    # rule matched above
    api_id = (host.api.id if host.api is not None else None) or host.api_id
    if api_id and "sharepointonline" in api_id:
        _register(
            connectors,
            SHAREPOINT_CONNECTOR,
            API_RESOURCE_PREFIX + SHAREPOINT_CONNECTOR,
            "sharepoint detection",
        )


def _discover_node(node: TriggerNode | ActionNode, connectors: dict[str, str]) -> None:
    if is_connector_bound(node):
        extract_connector(node.inputs.host, connectors)


def discover_trigger(trigger: TriggerNode, connectors: dict[str, str]) -> None:
    _discover_node(trigger, connectors)


def discover_action(action: ActionNode, connectors: dict[str, str]) -> None:
    """Discover connectors in an action and everything nested inside it."""
    _discover_node(action, connectors)
    for nested in iter_nested_action_maps(action):
        for _, child in walk_actions(nested):
            _discover_node(child, connectors)


def discover_connectors(
    triggers: Mapping[str, TriggerNode],
    actions: Mapping[str, ActionNode],
) -> dict[str, str]:
    """Build a fresh connector map for a whole definition."""
    connectors: dict[str, str] = {}
    for trigger in triggers.values():
        discover_trigger(trigger, connectors)
    for action in actions.values():
        discover_action(action, connectors)
    return connectors
