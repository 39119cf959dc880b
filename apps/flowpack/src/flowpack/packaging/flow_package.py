"""Single-flow import package (the legacy "Export > Package (.zip)" layout).

    manifest.json
    [Content_Types].xml
    Microsoft.Flow/manifest.json
    Microsoft.Flow/flows/<flow guid>/definition.json
    Microsoft.Flow/flows/<flow guid>/apisMap.json
    Microsoft.Flow/flows/<flow guid>/connectionsMap.json

Resource ids in manifest.json are generated for every build.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from ..templates.actions import AUTHENTICATION_EXPRESSION
from ..workflow.discovery import discover_connectors
from ..workflow.schema import FlowManifest, ParameterDefinition, walk_actions
from .archive import CONTENT_TYPES_XML, export_entries, zip_entries
from .metadata import connector_display_name

logger = logging.getLogger(__name__)

LEGACY_CONNECTOR_TYPE = "ApiConnection"
OPEN_API_CONNECTOR_TYPE = "OpenApiConnection"
PLACEHOLDER_ICON_URI = (
    "https://connectoricons-prod.azureedge.net/releases/v1.0.1611/1.0.1611.3105/default/icon.png"
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def load_flow_manifest(path: Path | str) -> FlowManifest:
    return FlowManifest.model_validate(json.loads(Path(path).read_text(encoding="utf-8")))


def flow_package_guid(manifest: FlowManifest) -> str:
    return manifest.id.rstrip("/").split("/")[-1]


def _inject_authentication(node: BaseModel) -> None:
    if "inputs" not in type(node).model_fields:
        # If/Switch/Foreach keep their fields at the top level
        return
    inputs = node.inputs
    if inputs is None:
        node.inputs = {"authentication": AUTHENTICATION_EXPRESSION}
    elif isinstance(inputs, dict):
        inputs["authentication"] = AUTHENTICATION_EXPRESSION
    elif isinstance(inputs, BaseModel):
        setattr(inputs, "authentication", AUTHENTICATION_EXPRESSION)


def _upgrade_node(node: BaseModel) -> None:
    if node.type == LEGACY_CONNECTOR_TYPE:
        node.type = OPEN_API_CONNECTOR_TYPE
    _inject_authentication(node)


def prepare_flow_manifest(manifest: FlowManifest) -> FlowManifest:
    """Return a copy ready for import: parameters, connector types and auth."""
    prepared = manifest.model_copy(deep=True)
    definition = prepared.properties.definition
    definition.parameters = {
        "$connections": ParameterDefinition(type="Object", default_value={}),
        "$authentication": ParameterDefinition(type="SecureObject", default_value={}),
    }
    for trigger in definition.triggers.values():
        _upgrade_node(trigger)
    for _, action in walk_actions(definition.actions):
        _upgrade_node(action)
    return prepared


def build_dependency_manifest(
    manifest: FlowManifest,
    connectors: dict[str, str],
    *,
    id_factory: Callable[[], Any] = uuid.uuid4,
    clock: Callable[[], datetime] = _utc_now,
) -> tuple[dict[str, Any], dict[str, str], dict[str, str]]:
    """Build the root manifest plus the apis and connections id maps."""
    flow_guid = flow_package_guid(manifest)
    properties = manifest.properties
    created = clock().astimezone(timezone.utc).isoformat(timespec="milliseconds")

    root_manifest: dict[str, Any] = {
        "schema": "1.0",
        "details": {
            "displayName": properties.display_name,
            "description": properties.description or "",
            "createdTime": created.replace("+00:00", "Z"),
            "packageTelemetryId": str(id_factory()),
            "creator": "N/A",
            "sourceEnvironment": "",
        },
        "resources": {},
    }
    resources = root_manifest["resources"]
    apis_map: dict[str, str] = {}
    connections_map: dict[str, str] = {}

    for connector_name, api_id in connectors.items():
        api_guid = str(id_factory())
        connection_guid = str(id_factory())
        apis_map[connector_name] = api_guid
        connections_map[connector_name] = connection_guid
        details = {
            "displayName": connector_display_name(connector_name),
            "iconUri": PLACEHOLDER_ICON_URI,
        }
        resources[api_guid] = {
            "id": api_id,
            "name": connector_name,
            "type": "Microsoft.PowerApps/apis",
            "suggestedCreationType": "Existing",
            "details": details,
            "configurableBy": "System",
            "hierarchy": "Child",
            "dependsOn": [],
        }
        resources[connection_guid] = {
            "type": "Microsoft.PowerApps/apis/connections",
            "suggestedCreationType": "Existing",
            "creationType": "Existing",
            "details": dict(details),
            "configurableBy": "User",
            "hierarchy": "Child",
            "dependsOn": [api_guid],
        }

    resources[flow_guid] = {
        "type": "Microsoft.Flow/flows",
        "suggestedCreationType": "New",
        "creationType": "Existing, New, Update",
        "details": {"displayName": properties.display_name},
        "configurableBy": "User",
        "hierarchy": "Root",
        "dependsOn": [*apis_map.values(), *connections_map.values()],
    }
    return root_manifest, apis_map, connections_map


def render_flow_package_entries(
    manifest: FlowManifest,
    *,
    id_factory: Callable[[], Any] = uuid.uuid4,
    clock: Callable[[], datetime] = _utc_now,
) -> dict[str, bytes]:
    flow_guid = flow_package_guid(manifest)
    prepared = prepare_flow_manifest(manifest)
    definition = prepared.properties.definition
    connectors = discover_connectors(definition.triggers, definition.actions)
    logger.info("Flow %s uses connectors: %s", flow_guid, ", ".join(connectors) or "(none)")

    root_manifest, apis_map, connections_map = build_dependency_manifest(
        prepared, connectors, id_factory=id_factory, clock=clock
    )
    prepared.properties.connection_references = {
        name: {"connection": {"id": connections_map[name]}, "api": {"id": api_id}}
        for name, api_id in connectors.items()
    }

    manifest_json = json.dumps(root_manifest, indent=2).encode("utf-8")
    flow_dir = f"Microsoft.Flow/flows/{flow_guid}"
    return {
        "manifest.json": manifest_json,
        "[Content_Types].xml": CONTENT_TYPES_XML.encode("utf-8"),
        "Microsoft.Flow/manifest.json": manifest_json,
        f"{flow_dir}/definition.json": json.dumps(prepared.to_json_dict(), indent=2).encode("utf-8"),
        f"{flow_dir}/apisMap.json": json.dumps(apis_map, indent=2).encode("utf-8"),
        f"{flow_dir}/connectionsMap.json": json.dumps(connections_map, indent=2).encode("utf-8"),
    }


def build_flow_package(
    manifest: FlowManifest,
    *,
    id_factory: Callable[[], Any] = uuid.uuid4,
    clock: Callable[[], datetime] = _utc_now,
) -> bytes:
    return zip_entries(render_flow_package_entries(manifest, id_factory=id_factory, clock=clock))


def export_flow_package(
    manifest: FlowManifest,
    output_dir: Path | str = "output",
    *,
    id_factory: Callable[[], Any] = uuid.uuid4,
    clock: Callable[[], datetime] = _utc_now,
) -> Path:
    """Write <output_dir>/<flow guid>.zip and return its path."""
    entries = render_flow_package_entries(manifest, id_factory=id_factory, clock=clock)
    return export_entries(entries, Path(output_dir), f"{flow_package_guid(manifest)}.zip")
