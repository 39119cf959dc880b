import itertools
import sys
import unittest
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from flowpack.config import DEFAULT_CONNECTION_ID
from flowpack.templates import (
    create_compose_action,
    create_condition_action,
    create_http_action,
    create_increment_variable_action,
    create_initialize_variable_action,
    create_manual_trigger,
    create_outlook_email_trigger,
    create_send_email_action,
    create_send_email_from_shared_mailbox_action,
    create_sendmail_action,
    create_sharepoint_create_item_action,
    create_sharepoint_item_trigger,
)
from flowpack.workflow.builder import FlowBuilder, create_workflow
from flowpack.workflow.discovery import discover_connectors
from flowpack.workflow.schema import DEFINITION_SCHEMA, ApiConnectionInputs, ConnectorAction, Host

SHAREPOINT_API = "/providers/Microsoft.PowerApps/apis/shared_sharepointonline"
OUTLOOK_API = "/providers/Microsoft.PowerApps/apis/shared_office365"
SENDMAIL_API = "/providers/Microsoft.PowerApps/apis/shared_sendmail"


def sequential_ids():
    counter = itertools.count(1)
    return lambda: f"00000000-0000-0000-0000-{next(counter):012d}"


def approval_flow(**kwargs) -> FlowBuilder:
    flow = create_workflow("Approval Flow", "Routes documents", id_factory=sequential_ids(), **kwargs)
    flow.add_trigger(
        "whenCreated",
        create_sharepoint_item_trigger(
            "https://contoso.sharepoint.com/sites/docs", "lib-1", "onItemCreated",
            "shared_sharepointonline", SHAREPOINT_API,
        ),
    )
    flow.add_action("details", create_compose_action({"name": "@{triggerBody()?['Name']}"}))
    flow.add_action(
        "notify",
        create_condition_action(
            "@equals(1, 1)",
            {"send": create_send_email_action("Hi", "Body", "a@example.com", "shared_office365", OUTLOOK_API)},
            run_after={"details": ["Succeeded"]},
        ),
    )
    return flow


class FlowBuilderTests(unittest.TestCase):
    def test_workflow_id_comes_from_injected_factory(self):
        flow = approval_flow()

        self.assertEqual(flow.workflow_id, "00000000-0000-0000-0000-000000000001")
        self.assertEqual(flow.display_name, "Approval Flow")
        self.assertEqual(flow.connection_id, DEFAULT_CONNECTION_ID)

    def test_connectors_are_discovered_as_nodes_are_added(self):
        flow = approval_flow()

        self.assertEqual(
            flow.connectors,
            {"shared_sharepointonline": SHAREPOINT_API, "shared_office365": OUTLOOK_API},
        )

    def test_connectors_property_is_a_copy(self):
        flow = approval_flow()
        flow.connectors["other"] = "/x"

        self.assertNotIn("other", flow.connectors)

    def test_every_connector_gets_an_invoker_connection_reference(self):
        flow = approval_flow(connection_id="live-connection")

        client_data = flow.get_definition().to_json_dict()
        references = client_data["properties"]["connectionReferences"]

        self.assertEqual(set(references), set(flow.connectors))
        for name, reference in references.items():
            self.assertEqual(reference["source"], "Invoker")
            self.assertEqual(reference["connectionName"], "live-connection")
            self.assertEqual(reference["id"], flow.connectors[name])

    def test_definition_document_shape(self):
        client_data = approval_flow().get_definition().to_json_dict()
        definition = client_data["properties"]["definition"]

        self.assertEqual(client_data["schemaVersion"], "1.0.0.0")
        self.assertEqual(definition["$schema"], DEFINITION_SCHEMA)
        self.assertEqual(definition["contentVersion"], "1.0.0.0")
        self.assertEqual(
            definition["parameters"]["$connections"],
            {
                "type": "Object",
                "defaultValue": {
                    "shared_sharepointonline": {"connectionId": DEFAULT_CONNECTION_ID},
                    "shared_office365": {"connectionId": DEFAULT_CONNECTION_ID},
                },
            },
        )
        self.assertEqual(definition["parameters"]["$authentication"], {"type": "SecureObject", "defaultValue": {}})

        trigger = definition["triggers"]["whenCreated"]
        self.assertEqual(trigger["type"], "ApiConnection")
        self.assertEqual(trigger["splitOn"], "@triggerBody()?['value']")
        self.assertEqual(trigger["recurrence"], {"frequency": "Minute", "interval": 1})

        notify = definition["actions"]["notify"]
        self.assertEqual(notify["type"], "If")
        self.assertEqual(notify["runAfter"], {"details": ["Succeeded"]})
        self.assertEqual(notify["actions"]["send"]["inputs"]["path"], "/v2/Mail")
        self.assertNotIn("else", notify)

    def test_connector_seen_again_in_nested_action_keeps_first_id(self):
        flow = FlowBuilder("Mail Intake", id_factory=sequential_ids())
        flow.add_trigger("mail", create_outlook_email_trigger("shared_office365", "/custom/apis/office"))
        nested_send = ConnectorAction(
            inputs=ApiConnectionInputs(
                host=Host(connection_name="shared_office365", api_id="/other/office", operation_id="SendEmailV2")
            )
        )

        flow.add_action("check", create_condition_action("@true", {"send": nested_send}))
        flow.add_action("again", create_condition_action("@true", {"send": nested_send}))

        self.assertEqual(flow.connectors, {"shared_office365": OUTLOOK_API})

    def test_missing_trigger_logs_warning(self):
        flow = FlowBuilder("Empty")

        with self.assertLogs("flowpack.workflow.builder", level="WARNING"):
            client_data = flow.get_definition()

        self.assertEqual(client_data.properties.definition.triggers, {})

    def test_flow_definition_snapshot(self):
        flow = approval_flow()

        snapshot = flow.to_flow_definition()

        self.assertEqual(snapshot.workflow_id, flow.workflow_id)
        self.assertEqual(snapshot.connectors, flow.connectors)
        self.assertIn("notify", snapshot.definition.properties.definition.actions)


class TemplateTests(unittest.TestCase):
    def test_condition_else_branch_serializes_as_else(self):
        action = create_condition_action(
            "@true", {"yes": create_compose_action("y")}, {"no": create_compose_action("n")}
        )

        data = action.to_json_dict()

        self.assertEqual(data["else"], {"actions": {"no": {"type": "Compose", "inputs": "n", "runAfter": {}}}})

    def test_http_and_variable_actions(self):
        http = create_http_action("GET", "https://example.com/report").to_json_dict()
        variable = create_initialize_variable_action("count", "Integer", 0).to_json_dict()

        self.assertEqual(http["inputs"], {"method": "GET", "uri": "https://example.com/report"})
        self.assertEqual(
            variable["inputs"], {"variables": [{"name": "count", "type": "Integer", "value": 0}]}
        )

    def test_increment_variable_action(self):
        action = create_increment_variable_action("emailCount", run_after={"checkChannel": ["Succeeded"]})

        self.assertEqual(
            action.to_json_dict(),
            {
                "type": "IncrementVariable",
                "inputs": {"name": "emailCount", "value": 1},
                "runAfter": {"checkChannel": ["Succeeded"]},
            },
        )

    def test_shared_mailbox_action_uses_flat_host(self):
        action = create_send_email_from_shared_mailbox_action(
            "team@example.com", "a@example.com", "Subject", "<p>Body</p>", "shared_office365", cc="c@example.com"
        )

        data = action.to_json_dict()
        connectors = discover_connectors({}, {"send": action})

        self.assertEqual(data["type"], "ApiConnection")
        self.assertEqual(
            data["inputs"]["host"],
            {"connectionName": "shared_office365", "apiId": OUTLOOK_API, "operationId": "SharedMailboxSendEmailV2"},
        )
        self.assertEqual(
            data["inputs"]["parameters"],
            {
                "emailMessage/MailboxAddress": "team@example.com",
                "emailMessage/To": "a@example.com",
                "emailMessage/Subject": "Subject",
                "emailMessage/Body": "<p>Body</p>",
                "emailMessage/Importance": "Normal",
                "emailMessage/Cc": "c@example.com",
            },
        )
        self.assertEqual(data["inputs"]["authentication"], "@parameters('$authentication')")
        self.assertEqual(connectors, {"shared_office365": OUTLOOK_API})

    def test_manual_trigger_is_a_button_request(self):
        trigger = create_manual_trigger().to_json_dict()

        self.assertEqual(trigger["type"], "Request")
        self.assertEqual(trigger["kind"], "Button")

    def test_outlook_trigger_and_sendmail_action_bind_their_connectors(self):
        trigger = create_outlook_email_trigger("shared_office365", OUTLOOK_API, folder_path="Support")
        action = create_sendmail_action("s", "b", "a@example.com", "shared_sendmail", SENDMAIL_API)

        connectors = discover_connectors({"mail": trigger}, {"notify": action})

        self.assertIn("Support", trigger.inputs.path)
        self.assertEqual(action.inputs.body["IsHtml"], True)
        self.assertEqual(connectors, {"shared_office365": OUTLOOK_API, "shared_sendmail": SENDMAIL_API})

    def test_sharepoint_create_item_path_targets_list(self):
        action = create_sharepoint_create_item_action(
            "https://contoso.sharepoint.com", "list-9", {"Title": "x"}, "shared_sharepointonline", SHAREPOINT_API
        )

        self.assertTrue(action.inputs.path.endswith("/tables/@{encodeURIComponent(encodeURIComponent('list-9'))}/items"))
        self.assertEqual(action.inputs.body, {"Title": "x"})


if __name__ == "__main__":
    unittest.main()
