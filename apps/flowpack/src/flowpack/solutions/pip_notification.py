"""Status change notifications driven by a SharePoint mapping list.

When an item's status field changes, the flow looks up the notification
mapping list for that status, mails every configured recipient and logs the
notification to an activity list.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..templates import (
    create_compose_action,
    create_condition_action,
    create_foreach_action,
    create_increment_variable_action,
    create_initialize_variable_action,
    create_scope_action,
    create_send_email_action,
    create_sendmail_action,
    create_sharepoint_create_item_action,
    create_sharepoint_get_items_action,
    create_sharepoint_item_trigger,
    create_switch_action,
)
from ..workflow.discovery import API_RESOURCE_PREFIX
from .base import BaseSolution, FlowConfig
from .registry import register

if TYPE_CHECKING:
    from ..config import Settings
    from ..workflow.builder import FlowBuilder

DEFAULT_STATUS_FIELD = "Status"
ACTIVITY_LOG_SUFFIX = "_ActivityLog"
STUDENT_ID_PLACEHOLDER = "[[STUDENTID]]"
STATUS_PLACEHOLDER = "[[STATUS]]"

DEFAULT_SUBJECT = f"Status Change Notification: {STUDENT_ID_PLACEHOLDER}"
DEFAULT_BODY = (
    f"<p>The status for student ID {STUDENT_ID_PLACEHOLDER} has changed to {STATUS_PLACEHOLDER}.</p>"
    "<p>Please review and take appropriate action.</p>"
)


def _fill_placeholders(template_expression: str) -> str:
    return (
        f"@{{replace(replace({template_expression}, '{STUDENT_ID_PLACEHOLDER}', "
        f"outputs('formatItemDetails')?['studentId']), '{STATUS_PLACEHOLDER}', "
        f"outputs('formatItemDetails')?['currentStatus'])}}"
    )


@register
class PipNotificationSolution(BaseSolution):
    name = "pip-notification-flow"
    summary = "Emails the recipients mapped to a status whenever a list item's status changes"
    required_inputs = ("list_url", "list_id", "notification_mapping_list_id")
    optional_inputs = ("notification_mapping_list_url", "status_field_name", "default_cc_email")

    def configure_flow(self, settings: Settings, inputs: dict[str, str]) -> FlowConfig:
        list_url = inputs["list_url"]
        list_id = inputs["list_id"]
        mapping_list_url = inputs.get("notification_mapping_list_url") or list_url
        mapping_list_id = inputs["notification_mapping_list_id"]
        status_field = inputs.get("status_field_name") or DEFAULT_STATUS_FIELD
        default_cc = settings.environment_recipients(inputs.get("default_cc_email") or settings.admin_email)

        sharepoint = settings.sharepoint_connection
        sharepoint_api = API_RESOURCE_PREFIX + sharepoint
        outlook = settings.outlook_connection
        outlook_api = API_RESOURCE_PREFIX + outlook
        sendmail = settings.sendmail_connection
        sendmail_api = API_RESOURCE_PREFIX + sendmail

        current_status = f"@{{triggerBody()?['{status_field}']?['Value']}}"

        def add_steps(flow: FlowBuilder) -> None:
            flow.add_trigger(
                "whenItemModified",
                create_sharepoint_item_trigger(list_url, list_id, "onItemModified", sharepoint, sharepoint_api),
            )
            flow.add_action(
                "formatItemDetails",
                create_compose_action(
                    {
                        "studentId": "@{triggerBody()?['StudentID']}",
                        "currentStatus": current_status,
                        "itemLink": "@{triggerBody()?['{Link}']}",
                    }
                ),
            )
            flow.add_action(
                "initializeEmailCount",
                create_initialize_variable_action(
                    "emailCount", "Integer", 0, run_after={"formatItemDetails": ["Succeeded"]}
                ),
            )
            flow.add_action(
                "getNotificationMappings",
                create_sharepoint_get_items_action(
                    mapping_list_url,
                    mapping_list_id,
                    {"$filter": f"Status eq '{current_status}'", "$top": 50},
                    sharepoint,
                    sharepoint_api,
                    run_after={"initializeEmailCount": ["Succeeded"]},
                ),
            )

            send_mapped_email = create_send_email_action(
                _fill_placeholders("items('sendMappedNotifications')?['Subject']"),
                _fill_placeholders("items('sendMappedNotifications')?['Body']"),
                settings.environment_recipients("@{items('sendMappedNotifications')?['Recipients']}"),
                outlook,
                outlook_api,
            )
            send_default_email = create_sendmail_action(
                _fill_placeholders(f"'{DEFAULT_SUBJECT}'"),
                _fill_placeholders(f"'{DEFAULT_BODY}'"),
                default_cc,
                sendmail,
                sendmail_api,
            )
            log_activity = create_sharepoint_create_item_action(
                list_url,
                f"{list_id}{ACTIVITY_LOG_SUFFIX}",
                {
                    "Title": "Status Notification Sent",
                    "ActivityType": "StatusChange",
                    "Description": f"Status changed to {current_status}. "
                    "Sent @{variables('emailCount')} notification(s).",
                },
                sharepoint,
                sharepoint_api,
            )

            flow.add_action(
                "routeByMappings",
                create_condition_action(
                    "@greater(length(body('getNotificationMappings')?['value']), 0)",
                    {
                        "sendMappedNotifications": create_foreach_action(
                            "@body('getNotificationMappings')?['value']",
                            {
                                "checkChannel": create_switch_action(
                                    "@items('sendMappedNotifications')?['Channel']",
                                    {"Email": {"sendMappedEmail": send_mapped_email}},
                                    default={
                                        "noteUnsupportedChannel": create_compose_action(
                                            "@{items('sendMappedNotifications')?['Channel']}"
                                        )
                                    },
                                ),
                                "countEmail": create_increment_variable_action(
                                    "emailCount",
                                    1,
                                    run_after={"checkChannel": ["Succeeded"]},
                                ),
                            },
                        )
                    },
                    {"sendDefaultEmail": send_default_email},
                    run_after={"getNotificationMappings": ["Succeeded"]},
                ),
            )
            flow.add_action(
                "logNotificationActivity",
                create_scope_action(
                    {"createActivityLogEntry": log_activity},
                    run_after={"routeByMappings": ["Succeeded", "Failed"]},
                ),
            )

        return FlowConfig(
            display_name="Status Change Notification",
            description=f"Sends notifications when '{status_field}' changes on the monitored list",
            add_steps=add_steps,
        )
