"""Document approval: route new library documents to an approver."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..templates import (
    create_compose_action,
    create_condition_action,
    create_send_email_action,
    create_sharepoint_create_item_action,
    create_sharepoint_item_trigger,
)
from ..workflow.discovery import API_RESOURCE_PREFIX
from .base import BaseSolution, FlowConfig
from .registry import register

if TYPE_CHECKING:
    from ..config import Settings
    from ..workflow.builder import FlowBuilder

DOCUMENT_DETAILS = """{
  "fileName": @{triggerBody()?['DisplayName']},
  "fileUrl": @{triggerBody()?['Path']},
  "author": @{triggerBody()?['Author']?['DisplayName']},
  "createdDate": @{formatDateTime(triggerBody()?['TimeCreated'], 'yyyy-MM-dd')},
  "documentType": @{if(contains(triggerBody()?['DisplayName'], '.pdf'), 'PDF',
                   if(contains(triggerBody()?['DisplayName'], '.docx'), 'Word',
                   if(contains(triggerBody()?['DisplayName'], '.xlsx'), 'Excel', 'Other')))}
}"""


def _detail(key: str) -> str:
    return f"@{{outputs('formatDocumentDetails')?['{key}']}}"


@register
class SharePointApprovalSolution(BaseSolution):
    name = "sharepoint-approval-flow"
    summary = "Routes documents for approval when they are added to a document library"
    required_inputs = ("document_library_url", "document_library_id")
    optional_inputs = ("approval_list_id", "approver_email")

    def configure_flow(self, settings: Settings, inputs: dict[str, str]) -> FlowConfig:
        site_url = inputs["document_library_url"]
        library_id = inputs["document_library_id"]
        approval_list_id = inputs.get("approval_list_id") or library_id
        approver = inputs.get("approver_email") or settings.admin_email
        notify = settings.environment_recipients(approver)

        sharepoint = settings.sharepoint_connection
        sharepoint_api = API_RESOURCE_PREFIX + sharepoint
        outlook = settings.outlook_connection
        outlook_api = API_RESOURCE_PREFIX + outlook

        def add_steps(flow: FlowBuilder) -> None:
            flow.add_trigger(
                "whenNewDocumentAdded",
                create_sharepoint_item_trigger(site_url, library_id, "onItemCreated", sharepoint, sharepoint_api),
            )
            flow.add_action("formatDocumentDetails", create_compose_action(DOCUMENT_DETAILS))
            flow.add_action(
                "sendApprovalRequest",
                create_send_email_action(
                    f"Document Approval Request: {_detail('fileName')}",
                    "<p>A new document has been uploaded and requires your approval:</p>"
                    f"<p><strong>Document Name:</strong> {_detail('fileName')}</p>"
                    f"<p><strong>Document Type:</strong> {_detail('documentType')}</p>"
                    f"<p><strong>Uploaded By:</strong> {_detail('author')}</p>"
                    f"<p><strong>Document Link:</strong> <a href=\"{_detail('fileUrl')}\">View Document</a></p>",
                    notify,
                    outlook,
                    outlook_api,
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
                        "RequestDate": "@{utcNow()}",
                        "ApprovalStatus": "Pending",
                        "DocumentType": _detail("documentType"),
                    },
                    sharepoint,
                    sharepoint_api,
                    run_after={"sendApprovalRequest": ["Succeeded"]},
                ),
            )
            flow.add_action(
                "checkFileType",
                create_condition_action(
                    "@equals(outputs('formatDocumentDetails')?['documentType'], 'PDF')",
                    {
                        "addPdfMetadata": create_sharepoint_create_item_action(
                            site_url,
                            library_id,
                            {
                                "id": "@{triggerBody()?['ID']}",
                                "ContentType": "Document",
                                "IsConfidential": True,
                                "ReviewDueDate": "@{addDays(utcNow(), 14)}",
                            },
                            sharepoint,
                            sharepoint_api,
                        )
                    },
                    {
                        "notifyAboutNonStandardDoc": create_send_email_action(
                            f"Non-Standard Document Uploaded: {_detail('fileName')}",
                            "<p>A non-standard document has been uploaded and is pending approval:</p>"
                            f"<p><strong>Document Name:</strong> {_detail('fileName')}</p>"
                            f"<p><strong>Document Type:</strong> {_detail('documentType')}</p>",
                            notify,
                            outlook,
                            outlook_api,
                        )
                    },
                    run_after={"createApprovalEntry": ["Succeeded"]},
                ),
            )

        return FlowConfig(
            display_name="Document Approval Workflow",
            description="Automatically routes documents for approval when added to a document library",
            add_steps=add_steps,
        )
