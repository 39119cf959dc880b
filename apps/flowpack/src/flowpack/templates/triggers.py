"""Trigger builders."""

from __future__ import annotations

from typing import Any, Literal, get_args

from ..workflow.schema import (
    ApiConnectionInputs,
    ConnectorTrigger,
    Recurrence,
    RecurrenceTrigger,
    RequestTrigger,
)
from .actions import APIM_AUTHENTICATION, connector_host, sharepoint_table_path

ScheduleFrequency = Literal["Minute", "Hour", "Day", "Week", "Month"]
SCHEDULE_FREQUENCIES: tuple[str, ...] = get_args(ScheduleFrequency)

SharePointEvent = Literal["onItemCreated", "onItemModified", "onItemCreatedOrModified"]

_SHAREPOINT_EVENT_PATHS = {
    "onItemCreated": "onnewitems",
    "onItemModified": "onupdateditems",
    "onItemCreatedOrModified": "onupdateditems",
}


def create_scheduled_trigger(
    frequency: ScheduleFrequency = "Day",
    interval: int = 1,
) -> RecurrenceTrigger:
    return RecurrenceTrigger(inputs={}, recurrence=Recurrence(frequency=frequency, interval=interval))


def create_manual_trigger(inputs_schema: dict[str, Any] | None = None) -> RequestTrigger:
    """Request trigger of kind Button ("Manually trigger a flow")."""
    schema = inputs_schema or {"type": "object", "properties": {}, "required": []}
    return RequestTrigger(kind="Button", inputs={"schema": schema})


def create_sharepoint_item_trigger(
    site_address: str,
    list_id: str,
    event: SharePointEvent,
    connection_name: str,
    api_id: str,
) -> ConnectorTrigger:
    """Polling SharePoint list trigger, split so each item starts its own run."""
    return ConnectorTrigger(
        inputs=ApiConnectionInputs(
            host=connector_host(connection_name, api_id),
            method="GET",
            path=sharepoint_table_path(site_address, list_id, _SHAREPOINT_EVENT_PATHS[event]),
            authentication=dict(APIM_AUTHENTICATION),
        ),
        split_on="@triggerBody()?['value']",
        recurrence=Recurrence(frequency="Minute", interval=1),
    )


def create_outlook_email_trigger(
    connection_name: str,
    api_id: str,
    folder_path: str = "Inbox",
) -> ConnectorTrigger:
    """Office 365 Outlook "When a new email arrives"."""
    return ConnectorTrigger(
        inputs=ApiConnectionInputs(
            host=connector_host(connection_name, api_id),
            method="GET",
            path=f"/MailFolders/@{{encodeURIComponent(encodeURIComponent('{folder_path}'))}}/onnewemail",
            authentication=dict(APIM_AUTHENTICATION),
        ),
    )
