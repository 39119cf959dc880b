"""Document approval with departmental routing and escalation.

Documents are tagged with a department column. Finance and HR documents go
to their own approvers, everything else to the primary approver. Each request
records an escalation date ``escalation_delay_hours`` after upload, and
documents outside the General department are announced to a notification
list, optionally from a shared mailbox.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..errors import ConfigurationError
from ..templates import (
    create_compose_action,
    create_condition_action,
    create_send_email_action,
    create_send_email_from_shared_mailbox_action,
    create_sharepoint_create_item_action,
    create_sharepoint_item_trigger,
)
from ..workflow.discovery import API_RESOURCE_PREFIX
from .base import BaseSolution, FlowConfig
from .registry import register

if TYPE_CHECKING:
    from ..config import Settings
    from ..workflow.builder import FlowBuilder

DEFAULT_DEPARTMENT_COLUMN = "Department"
DEFAULT_ESCALATION_HOURS = 24
GENERAL_DEPARTMENT = "General"


def _detail(key: str) -> str:
    return f"@{{outputs('formatDocumentDetails')?['{key}']}}"


def _by_department(key: str) -> str:
    """Pick ``key`` from whichever approver branch ran."""
    return (
        "@{if(equals(outputs('formatDocumentDetails')?['department'], 'Finance'), "
        f"outputs('setFinanceApprover')?['{key}'], "
        "if(equals(outputs('formatDocumentDetails')?['department'], 'HR'), "
        f"outputs('setHRApprover')?['{key}'], "
        f"outputs('setDefaultApprover')?['{key}']))}}"
    )


def _document_details(department_column: str, escalation_hours: int) -> str:
    return f"""{{
  "fileName": @{{triggerBody()?['DisplayName']}},
  "fileUrl": @{{triggerBody()?['Path']}},
  "fileId": @{{triggerBody()?['ID']}},
  "author": @{{triggerBody()?['Author']?['DisplayName']}},
  "authorEmail": @{{triggerBody()?['Author']?['Email']}},
  "createdDate": @{{formatDateTime(triggerBody()?['TimeCreated'], 'yyyy-MM-dd')}},
  "department": @{{coalesce(triggerBody()?['{department_column}'], '{GENERAL_DEPARTMENT}')}},
  "documentType": @{{if(contains(triggerBody()?['DisplayName'], '.pdf'), 'PDF',
                   if(contains(triggerBody()?['DisplayName'], '.docx'), 'Word',
                   if(contains(triggerBody()?['DisplayName'], '.xlsx'), 'Excel', 'Other')))}},
  "reviewDueDate": @{{formatDateTime(addDays(utcNow(), 7), 'yyyy-MM-dd')}},
  "escalationDateTime": @{{formatDateTime(addHours(utcNow(), {escalation_hours}), 'yyyy-MM-dd HH:mm:ss')}}
}}"""


def _approver(email: str, name: str, priority: str):
    return create_compose_action({"approverEmail": email, "approverName": name, "approvalPriority": priority})


@register
class AdvancedSharePointApprovalSolution(BaseSolution):
    name = "sharepoint-approval-advanced"
    summary = "Routes library documents to departmental approvers with escalation dates"
    required_inputs = ("document_library_url", "document_library_id")
    optional_inputs = (
        "approval_list_id",
        "department_tag_column",
        "escalation_delay_hours",
        "primary_approver_email",
        "finance_approver_email",
        "hr_approver_email",
        "notification_list_email",
        "shared_mailbox",
    )

    def escalation_delay_hours(self, inputs: dict[str, str]) -> int:
        value = inputs.get("escalation_delay_hours")
        if not value:
            return DEFAULT_ESCALATION_HOURS
        try:
            hours = int(str(value).strip())
        except ValueError:
            hours = 0
        if hours <= 0:
            raise ConfigurationError(
                f"For solution '{self.name}', escalation_delay_hours must be a positive "
                f"whole number of hours (got {value!r})"
            )
        return hours

    def validate_inputs(self, inputs: dict[str, str]) -> None:
        super().validate_inputs(inputs)
        self.escalation_delay_hours(inputs)

    def configure_flow(self, settings: Settings, inputs: dict[str, str]) -> FlowConfig:
        site_url = inputs["document_library_url"]
        library_id = inputs["document_library_id"]
        approval_list_id = inputs.get("approval_list_id") or library_id
        department_column = inputs.get("department_tag_column") or DEFAULT_DEPARTMENT_COLUMN
        escalation_hours = self.escalation_delay_hours(inputs)
        shared_mailbox = inputs.get("shared_mailbox")

        def recipient(key: str) -> str:
            return settings.environment_recipients(inputs.get(key) or settings.admin_email)

        sharepoint = settings.sharepoint_connection
        sharepoint_api = API_RESOURCE_PREFIX + sharepoint
        outlook = settings.outlook_connection
        outlook_api = API_RESOURCE_PREFIX + outlook

        department_subject = f"New {_detail('department')} Document Added: {_detail('fileName')}"
        department_body = (
            f"<p>A new document has been added to the {_detail('department')} department:</p>"
            f"<p><strong>Document Name:</strong> {_detail('fileName')}</p>"
            f"<p><strong>Document Type:</strong> {_detail('documentType')}</p>"
            f"<p><strong>Uploaded By:</strong> {_detail('author')}</p>"
            "<p><strong>Status:</strong> Pending Approval</p>"
            f"<p><strong>Document Link:</strong> <a href=\"{_detail('fileUrl')}\">View Document</a></p>"
        )
        if shared_mailbox:
            department_notification = create_send_email_from_shared_mailbox_action(
                shared_mailbox,
                recipient("notification_list_email"),
                department_subject,
                department_body,
                outlook,
                outlook_api,
            )
        else:
            department_notification = create_send_email_action(
                department_subject, department_body, recipient("notification_list_email"), outlook, outlook_api
            )

        def add_steps(flow: FlowBuilder) -> None:
            flow.add_trigger(
                "whenNewDocumentAdded",
                create_sharepoint_item_trigger(site_url, library_id, "onItemCreated", sharepoint, sharepoint_api),
            )
            flow.add_action(
                "formatDocumentDetails",
                create_compose_action(_document_details(department_column, escalation_hours)),
            )
            flow.add_action(
                "determineApprover",
                create_condition_action(
                    "@equals(outputs('formatDocumentDetails')?['department'], 'Finance')",
                    {
                        "setFinanceApprover": _approver(
                            recipient("finance_approver_email"), "Finance Approver", "High"
                        )
                    },
                    {
                        "checkIfHR": create_condition_action(
                            "@equals(outputs('formatDocumentDetails')?['department'], 'HR')",
                            {"setHRApprover": _approver(recipient("hr_approver_email"), "HR Approver", "Medium")},
                            {
                                "setDefaultApprover": _approver(
                                    recipient("primary_approver_email"), "Document Approver", "Normal"
                                )
                            },
                        )
                    },
                    run_after={"formatDocumentDetails": ["Succeeded"]},
                ),
            )
            flow.add_action(
                "createApprovalEntry",
                create_sharepoint_create_item_action(
                    site_url,
                    approval_list_id,
                    {
                        "Title": _detail("fileName"),
                        "DocumentLink": _detail("fileUrl"),
                        "RequestedBy": _detail("author"),
                        "ApproverEmail": _by_department("approverEmail"),
                        "RequestDate": "@{utcNow()}",
                        "DueDate": _detail("reviewDueDate"),
                        "ApprovalStatus": "Pending",
                        "Department": _detail("department"),
                        "DocumentType": _detail("documentType"),
                        "Priority": _by_department("approvalPriority"),
                        "EscalationDate": _detail("escalationDateTime"),
                    },
                    sharepoint,
                    sharepoint_api,
                    run_after={"determineApprover": ["Succeeded"]},
                ),
            )
            flow.add_action(
                "sendApprovalRequest",
                create_send_email_action(
                    "@{if(equals(outputs('formatDocumentDetails')?['department'], 'Finance'), "
                    "concat('[Finance] Document Approval: ', outputs('formatDocumentDetails')?['fileName']), "
                    "if(equals(outputs('formatDocumentDetails')?['department'], 'HR'), "
                    "concat('[HR] Document Approval: ', outputs('formatDocumentDetails')?['fileName']), "
                    "concat('Document Approval Request: ', outputs('formatDocumentDetails')?['fileName'])))}",
                    f"<p>A new {_detail('department')} document has been uploaded and requires your approval:</p>"
                    f"<p><strong>Document Name:</strong> {_detail('fileName')}</p>"
                    f"<p><strong>Document Type:</strong> {_detail('documentType')}</p>"
                    f"<p><strong>Uploaded By:</strong> {_detail('author')} ({_detail('authorEmail')})</p>"
                    f"<p><strong>Priority:</strong> {_by_department('approvalPriority')}</p>"
                    f"<p><strong>Review Due By:</strong> {_detail('reviewDueDate')}</p>"
                    f"<p><strong>Document Link:</strong> <a href=\"{_detail('fileUrl')}\">View Document</a></p>"
                    f"<p><em>If not approved within {escalation_hours} hours, this request will be escalated.</em></p>",
                    settings.environment_recipients(_by_department("approverEmail")),
                    outlook,
                    outlook_api,
                    run_after={"createApprovalEntry": ["Succeeded"]},
                ),
            )
            flow.add_action(
                "updateDocumentMetadata",
                create_sharepoint_create_item_action(
                    site_url,
                    library_id,
                    {
                        "id": "@{triggerBody()?['ID']}",
                        "ContentType": "Document",
                        "Department": _detail("department"),
                        "ApprovalStatus": "Pending",
                        "RequiresReview": True,
                        "ReviewDueDate": _detail("reviewDueDate"),
                        "IsConfidential": "@{equals(outputs('formatDocumentDetails')?['documentType'], 'PDF')}",
                    },
                    sharepoint,
                    sharepoint_api,
                    run_after={"sendApprovalRequest": ["Succeeded"]},
                ),
            )
            flow.add_action(
                "notifyDocumentOwner",
                create_send_email_action(
                    f"Document Approval Process Started: {_detail('fileName')}",
                    "<p>Your document has been submitted for approval:</p>"
                    f"<p><strong>Document Name:</strong> {_detail('fileName')}</p>"
                    f"<p><strong>Department:</strong> {_detail('department')}</p>"
                    f"<p><strong>Approver:</strong> {_by_department('approverName')}</p>"
                    f"<p><strong>Expected Review By:</strong> {_detail('reviewDueDate')}</p>",
                    settings.environment_recipients(_detail("authorEmail")),
                    outlook,
                    outlook_api,
                    run_after={"updateDocumentMetadata": ["Succeeded"]},
                ),
            )
            flow.add_action(
                "notifyDepartmentAdmin",
                create_condition_action(
                    f"@not(equals(outputs('formatDocumentDetails')?['department'], '{GENERAL_DEPARTMENT}'))",
                    {"sendDepartmentNotification": department_notification},
                    run_after={"notifyDocumentOwner": ["Succeeded"]},
                ),
            )

        return FlowConfig(
            display_name="Advanced Document Approval Workflow",
            description="Document approval with departmental routing, escalation dates and notifications",
            add_steps=add_steps,
        )
