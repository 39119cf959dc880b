import io
import itertools
import json
import shutil
import sys
import tempfile
import unittest
import zipfile
from datetime import datetime, timezone
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from flowpack.packaging.flow_package import (
    AUTHENTICATION_EXPRESSION,
    build_flow_package,
    export_flow_package,
    flow_package_guid,
    load_flow_manifest,
    prepare_flow_manifest,
)
from flowpack.workflow.discovery import discover_connectors
from flowpack.workflow.schema import FlowManifest

FLOW_GUID = "6f1c2a9e-0000-4000-8000-000000000abc"
API_PREFIX = "/providers/Microsoft.PowerApps/apis/"


def connection_expression(name):
    return f"@parameters('$connections')['{name}']['connectionId']"


MANIFEST = {
    "id": f"/providers/Microsoft.Flow/flows/{FLOW_GUID}",
    "name": FLOW_GUID,
    "type": "Microsoft.Flow/flows",
    "properties": {
        "apiId": "/providers/Microsoft.PowerApps/apis/shared_logicflows",
        "displayName": "Status Notifications",
        "description": "Notifies recipients when a status changes",
        "definition": {
            "$schema": "https://schema.management.azure.com/providers/Microsoft.Logic/schemas/2016-06-01/workflowdefinition.json#",
            "contentVersion": "1.0.0.0",
            "parameters": {"$connections": {"type": "Object", "defaultValue": {}}},
            "triggers": {
                "whenModified": {
                    "type": "ApiConnection",
                    "inputs": {
                        "host": {"connection": {"name": connection_expression("shared_sharepointonline")}},
                        "method": "get",
                        "path": "/datasets/x/tables/y/onupdateditems",
                    },
                    "recurrence": {"frequency": "Minute", "interval": 1},
                    "splitOn": "@triggerBody()?['value']",
                }
            },
            "actions": {
                "route": {
                    "type": "Switch",
                    "expression": "@triggerBody()?['Status']",
                    "cases": {
                        "approved": {
                            "case": "Approved",
                            "actions": {
                                "eachRecipient": {
                                    "type": "Foreach",
                                    "foreach": "@body('getRecipients')?['value']",
                                    "actions": {
                                        "send": {
                                            "type": "ApiConnection",
                                            "inputs": {
                                                "host": {
                                                    "connection": {"name": connection_expression("shared_office365")}
                                                },
                                                "method": "post",
                                                "path": "/v2/Mail",
                                            },
                                            "runAfter": {},
                                        }
                                    },
                                }
                            },
                        }
                    },
                    "default": {"actions": {"label": {"type": "Compose", "inputs": "unrouted"}}},
                    "runAfter": {},
                },
                "wrap": {
                    "type": "Scope",
                    "inputs": {
                        "actions": {
                            "log": {
                                "type": "OpenApiConnection",
                                "inputs": {
                                    "host": {
                                        "connectionName": "shared_sendmail",
                                        "apiId": API_PREFIX + "shared_sendmail",
                                        "operationId": "SendEmailV3",
                                    },
                                    "parameters": {"request/To": "ops@example.com"},
                                },
                            }
                        }
                    },
                    "runAfter": {"route": ["Succeeded"]},
                },
            },
        },
    },
}


def sequential_ids():
    counter = itertools.count(1)
    return lambda: f"00000000-0000-0000-0000-{next(counter):012d}"


def resource_id(n):
    return f"00000000-0000-0000-0000-{n:012d}"


def fixed_clock():
    return datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)


def read_package(data):
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        return archive.namelist(), {name: archive.read(name) for name in archive.namelist()}


class FlowPackageTests(unittest.TestCase):
    def setUp(self):
        self.manifest = FlowManifest.model_validate(MANIFEST)
        data = build_flow_package(self.manifest, id_factory=sequential_ids(), clock=fixed_clock)
        self.names, self.entries = read_package(data)
        self.flow_dir = f"Microsoft.Flow/flows/{FLOW_GUID}"

    def test_flow_guid_is_last_id_segment(self):
        self.assertEqual(flow_package_guid(self.manifest), FLOW_GUID)

    def test_archive_layout(self):
        self.assertEqual(
            self.names,
            [
                "manifest.json",
                "[Content_Types].xml",
                "Microsoft.Flow/manifest.json",
                f"{self.flow_dir}/definition.json",
                f"{self.flow_dir}/apisMap.json",
                f"{self.flow_dir}/connectionsMap.json",
            ],
        )
        self.assertEqual(self.entries["manifest.json"], self.entries["Microsoft.Flow/manifest.json"])

    def test_connector_maps_cover_every_depth(self):
        apis_map = json.loads(self.entries[f"{self.flow_dir}/apisMap.json"])
        connections_map = json.loads(self.entries[f"{self.flow_dir}/connectionsMap.json"])

        self.assertEqual(
            apis_map,
            {
                "shared_sharepointonline": resource_id(2),
                "shared_office365": resource_id(4),
                "shared_sendmail": resource_id(6),
            },
        )
        self.assertEqual(
            connections_map,
            {
                "shared_sharepointonline": resource_id(3),
                "shared_office365": resource_id(5),
                "shared_sendmail": resource_id(7),
            },
        )

    def test_dependency_manifest_edges(self):
        manifest = json.loads(self.entries["manifest.json"])
        resources = manifest["resources"]

        self.assertEqual(manifest["schema"], "1.0")
        self.assertEqual(manifest["details"]["displayName"], "Status Notifications")
        self.assertEqual(manifest["details"]["createdTime"], "2024-05-06T07:08:09.000Z")
        self.assertEqual(manifest["details"]["packageTelemetryId"], resource_id(1))
        self.assertEqual(manifest["details"]["creator"], "N/A")

        api = resources[resource_id(2)]
        self.assertEqual(api["type"], "Microsoft.PowerApps/apis")
        self.assertEqual(api["id"], API_PREFIX + "shared_sharepointonline")
        self.assertEqual(api["details"]["displayName"], "SharePoint")
        self.assertEqual(api["dependsOn"], [])

        connection = resources[resource_id(3)]
        self.assertEqual(connection["type"], "Microsoft.PowerApps/apis/connections")
        self.assertEqual(connection["dependsOn"], [resource_id(2)])

        flow = resources[FLOW_GUID]
        self.assertEqual(flow["type"], "Microsoft.Flow/flows")
        self.assertEqual(flow["hierarchy"], "Root")
        self.assertEqual(
            flow["dependsOn"],
            [resource_id(n) for n in (2, 4, 6, 3, 5, 7)],
        )
        self.assertEqual(len(resources), 7)

    def test_definition_is_upgraded_at_every_depth(self):
        document = json.loads(self.entries[f"{self.flow_dir}/definition.json"])
        definition = document["properties"]["definition"]

        self.assertEqual(
            definition["parameters"],
            {
                "$connections": {"type": "Object", "defaultValue": {}},
                "$authentication": {"type": "SecureObject", "defaultValue": {}},
            },
        )

        trigger = definition["triggers"]["whenModified"]
        self.assertEqual(trigger["type"], "OpenApiConnection")
        self.assertEqual(trigger["inputs"]["authentication"], AUTHENTICATION_EXPRESSION)

        route = definition["actions"]["route"]
        send = route["cases"]["approved"]["actions"]["eachRecipient"]["actions"]["send"]
        self.assertEqual(send["type"], "OpenApiConnection")
        self.assertEqual(send["inputs"]["authentication"], AUTHENTICATION_EXPRESSION)
        self.assertNotIn("inputs", route)
        self.assertEqual(route["default"]["actions"]["label"]["inputs"], "unrouted")

        log = definition["actions"]["wrap"]["inputs"]["actions"]["log"]
        self.assertEqual(log["inputs"]["authentication"], AUTHENTICATION_EXPRESSION)
        self.assertEqual(log["inputs"]["parameters"], {"request/To": "ops@example.com"})

    def test_connection_references_point_at_generated_resources(self):
        document = json.loads(self.entries[f"{self.flow_dir}/definition.json"])

        self.assertEqual(
            document["properties"]["connectionReferences"]["shared_office365"],
            {"connection": {"id": resource_id(5)}, "api": {"id": API_PREFIX + "shared_office365"}},
        )

    def test_source_manifest_is_not_modified(self):
        prepare_flow_manifest(self.manifest)

        trigger = self.manifest.properties.definition.triggers["whenModified"]
        self.assertEqual(trigger.type, "ApiConnection")
        self.assertIsNone(trigger.inputs.authentication)
        self.assertNotIn("$authentication", self.manifest.properties.definition.parameters)


class ExportFlowPackageTests(unittest.TestCase):
    def test_load_and_export_from_file(self):
        tmpdir = Path(tempfile.mkdtemp())
        try:
            manifest_path = tmpdir / "flow.json"
            manifest_path.write_text(json.dumps(MANIFEST), encoding="utf-8")
            output_dir = tmpdir / "out"

            zip_path = export_flow_package(load_flow_manifest(manifest_path), output_dir)

            self.assertEqual(zip_path, output_dir / f"{FLOW_GUID}.zip")
            self.assertEqual([p.name for p in output_dir.iterdir()], [f"{FLOW_GUID}.zip"])
            with zipfile.ZipFile(zip_path) as archive:
                self.assertIn(f"Microsoft.Flow/flows/{FLOW_GUID}/definition.json", archive.namelist())
        finally:
            shutil.rmtree(tmpdir, ignore_errors=True)


DATA_OPERATIONS_MANIFEST = {
    "id": f"/providers/Microsoft.Flow/flows/{FLOW_GUID}",
    "properties": {
        "displayName": "Channel Digest",
        "definition": {
            "triggers": {
                "whenMessagePosted": {
                    "type": "OpenApiConnectionWebhook",
                    "inputs": {
                        "host": {
                            "connectionName": "shared_teams",
                            "apiId": API_PREFIX + "shared_teams",
                            "operationId": "WebhookChannelMessageTrigger",
                        },
                        "parameters": {"groupId": "team-1", "channelId": "channel-1"},
                    },
                }
            },
            "actions": {
                "parseMessage": {
                    "type": "ParseJson",
                    "inputs": {"content": "@triggerBody()", "schema": {"type": "object"}},
                },
                "filterMentions": {
                    "type": "Query",
                    "inputs": {"from": "@body('parseMessage')?['mentions']", "where": "@not(empty(item()))"},
                    "runAfter": {"parseMessage": ["Succeeded"]},
                },
                "selectNames": {
                    "type": "Select",
                    "inputs": {"from": "@body('filterMentions')", "select": "@item()?['name']"},
                    "runAfter": {"filterMentions": ["Succeeded"]},
                },
                "joinNames": {
                    "type": "Join",
                    "inputs": {"from": "@body('selectNames')", "joinWith": ", "},
                    "runAfter": {"selectNames": ["Succeeded"]},
                },
                "retrySend": {
                    "type": "Until",
                    "expression": "@equals(variables('sent'), true)",
                    "limit": {"count": 5, "timeout": "PT1H"},
                    "actions": {
                        "sendDigest": {
                            "type": "ApiConnection",
                            "inputs": {
                                "host": {"connection": {"name": connection_expression("shared_office365")}},
                                "method": "post",
                                "path": "/v2/Mail",
                            },
                        }
                    },
                    "runAfter": {"joinNames": ["Succeeded"]},
                },
                "respond": {
                    "type": "Response",
                    "kind": "Http",
                    "inputs": {"statusCode": 200, "body": "@body('joinNames')"},
                    "runAfter": {"retrySend": ["Succeeded"]},
                },
            },
        },
    },
}


class DataOperationManifestTests(unittest.TestCase):
    def setUp(self):
        self.manifest = FlowManifest.model_validate(DATA_OPERATIONS_MANIFEST)

    def test_data_operation_and_loop_nodes_load(self):
        actions = self.manifest.properties.definition.actions

        self.assertEqual(
            [action.type for action in actions.values()],
            ["ParseJson", "Query", "Select", "Join", "Until", "Response"],
        )
        self.assertEqual(actions["retrySend"].limit, {"count": 5, "timeout": "PT1H"})
        self.assertEqual(
            self.manifest.properties.definition.triggers["whenMessagePosted"].type,
            "OpenApiConnectionWebhook",
        )

    def test_webhook_trigger_and_until_body_are_discovered(self):
        definition = self.manifest.properties.definition

        connectors = discover_connectors(definition.triggers, definition.actions)

        self.assertEqual(
            connectors,
            {"shared_teams": API_PREFIX + "shared_teams", "shared_office365": API_PREFIX + "shared_office365"},
        )

    def test_package_upgrades_connector_inside_until(self):
        data = build_flow_package(self.manifest, id_factory=sequential_ids(), clock=fixed_clock)
        _, entries = read_package(data)
        flow_dir = f"Microsoft.Flow/flows/{FLOW_GUID}"

        apis_map = json.loads(entries[f"{flow_dir}/apisMap.json"])
        definition = json.loads(entries[f"{flow_dir}/definition.json"])["properties"]["definition"]

        self.assertEqual(list(apis_map), ["shared_teams", "shared_office365"])
        self.assertEqual(definition["triggers"]["whenMessagePosted"]["type"], "OpenApiConnectionWebhook")
        send = definition["actions"]["retrySend"]["actions"]["sendDigest"]
        self.assertEqual(send["type"], "OpenApiConnection")
        self.assertEqual(send["inputs"]["authentication"], AUTHENTICATION_EXPRESSION)
        self.assertEqual(definition["actions"]["joinNames"]["inputs"]["joinWith"], ", ")


if __name__ == "__main__":
    unittest.main()
