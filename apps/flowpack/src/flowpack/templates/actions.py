"""Action builders."""

from __future__ import annotations

from typing import Any, Literal

from ..workflow.schema import (
    ActionNode,
    ApiConnectionInputs,
    ApiReference,
    Branch,
    ComposeAction,
    Connection,
    ConnectorAction,
    ForeachAction,
    Host,
    HttpAction,
    HttpInputs,
    IfAction,
    ScopeAction,
    ScopeInputs,
    SwitchAction,
    SwitchCase,
    VariableAction,
)

# Token forwarding used by connector operations run as the invoking user
APIM_AUTHENTICATION = {
    "type": "Raw",
    "value": "@triggers().outputs?['headers']?['X-MS-APIM-Tokens']",
}
# Authentication parameter used by OpenApiConnection operations
AUTHENTICATION_EXPRESSION = "@parameters('$authentication')"
OUTLOOK_API_ID = "/providers/Microsoft.PowerApps/apis/shared_office365"

ActionMap = dict[str, ActionNode]


def connection_name_expression(connection_name: str) -> str:
    return f"@parameters('$connections')['{connection_name}']['connectionId']"


def connector_host(connection_name: str, api_id: str) -> Host:
    return Host(
        connection=Connection(name=connection_name_expression(connection_name)),
        api=ApiReference(id=api_id),
    )


def sharepoint_table_path(site_address: str, list_id: str, suffix: str) -> str:
    return (
        f"/datasets/@{{encodeURIComponent(encodeURIComponent('{site_address}'))}}"
        f"/tables/@{{encodeURIComponent(encodeURIComponent('{list_id}'))}}/{suffix}"
    )


def create_compose_action(inputs: Any, run_after: dict[str, list[str]] | None = None) -> ComposeAction:
    return ComposeAction(inputs=inputs, run_after=run_after or {})


def create_condition_action(
    expression: Any,
    if_true: ActionMap,
    if_false: ActionMap | None = None,
    run_after: dict[str, list[str]] | None = None,
) -> IfAction:
    """An If action; expression is an expression string or an and/or object."""
    return IfAction(
        expression=expression,
        actions=if_true or {},
        else_=Branch(actions=if_false) if if_false is not None else None,
        run_after=run_after or {},
    )


def create_switch_action(
    expression: str,
    cases: dict[str, ActionMap],
    default: ActionMap | None = None,
    run_after: dict[str, list[str]] | None = None,
) -> SwitchAction:
    """A Switch action; cases maps each matched value to its actions."""
    return SwitchAction(
        expression=expression,
        cases={value: SwitchCase(case=value, actions=actions) for value, actions in cases.items()},
        default=Branch(actions=default) if default is not None else None,
        run_after=run_after or {},
    )


def create_foreach_action(
    items: str,
    actions: ActionMap,
    run_after: dict[str, list[str]] | None = None,
) -> ForeachAction:
    return ForeachAction(foreach=items, actions=actions, run_after=run_after or {})


def create_scope_action(actions: ActionMap, run_after: dict[str, list[str]] | None = None) -> ScopeAction:
    return ScopeAction(inputs=ScopeInputs(actions=actions), run_after=run_after or {})


def create_http_action(
    method: Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "TRACE"],
    uri: str,
    headers: dict[str, Any] | None = None,
    body: Any = None,
    authentication: Any = None,
    run_after: dict[str, list[str]] | None = None,
) -> HttpAction:
    return HttpAction(
        inputs=HttpInputs(method=method, uri=uri, headers=headers, body=body, authentication=authentication),
        run_after=run_after or {},
    )


def create_initialize_variable_action(
    name: str,
    variable_type: Literal["Array", "Boolean", "Float", "Integer", "Object", "String"],
    value: Any = None,
    run_after: dict[str, list[str]] | None = None,
) -> VariableAction:
    variable: dict[str, Any] = {"name": name, "type": variable_type}
    if value is not None:
        variable["value"] = value
    return VariableAction(
        type="InitializeVariable",
        inputs={"variables": [variable]},
        run_after=run_after or {},
    )


def create_set_variable_action(
    name: str,
    value: Any,
    run_after: dict[str, list[str]] | None = None,
) -> VariableAction:
    return VariableAction(type="SetVariable", inputs={"name": name, "value": value}, run_after=run_after or {})


def create_increment_variable_action(
    name: str,
    value: int | float = 1,
    run_after: dict[str, list[str]] | None = None,
) -> VariableAction:
    """Add value to a numeric variable; SetVariable cannot reference its own variable."""
    return VariableAction(
        type="IncrementVariable", inputs={"name": name, "value": value}, run_after=run_after or {}
    )


def create_send_email_action(
    subject: str,
    body: str,
    to: str,
    connection_name: str,
    api_id: str,
    run_after: dict[str, list[str]] | None = None,
) -> ConnectorAction:
    """Office 365 Outlook "Send an email (V2)"."""
    return ConnectorAction(
        inputs=ApiConnectionInputs(
            host=connector_host(connection_name, api_id),
            method="POST",
            path="/v2/Mail",
            body={"To": to, "Subject": subject, "Body": body},
            authentication=dict(APIM_AUTHENTICATION),
        ),
        run_after=run_after or {},
    )


def create_sharepoint_get_items_action(
    site_address: str,
    list_id: str,
    queries: dict[str, Any],
    connection_name: str,
    api_id: str,
    run_after: dict[str, list[str]] | None = None,
) -> ConnectorAction:
    """SharePoint "Get items"; queries takes $select/$filter/$top/$orderby."""
    return ConnectorAction(
        inputs=ApiConnectionInputs(
            host=connector_host(connection_name, api_id),
            method="GET",
            path=sharepoint_table_path(site_address, list_id, "items"),
            queries=queries,
            authentication=dict(APIM_AUTHENTICATION),
        ),
        run_after=run_after or {},
    )


def create_sharepoint_create_item_action(
    site_address: str,
    list_id: str,
    item: dict[str, Any],
    connection_name: str,
    api_id: str,
    run_after: dict[str, list[str]] | None = None,
) -> ConnectorAction:
    return ConnectorAction(
        inputs=ApiConnectionInputs(
            host=connector_host(connection_name, api_id),
            method="POST",
            path=sharepoint_table_path(site_address, list_id, "items"),
            body=item,
            authentication=dict(APIM_AUTHENTICATION),
        ),
        run_after=run_after or {},
    )


def create_sendmail_action(
    subject: str,
    body: str,
    to: str,
    connection_name: str,
    api_id: str,
    run_after: dict[str, list[str]] | None = None,
) -> ConnectorAction:
    """Mail connector "Send an email notification"; needs no mailbox."""
    return ConnectorAction(
        inputs=ApiConnectionInputs(
            host=connector_host(connection_name, api_id),
            method="POST",
            path="/v4/Mail",
            body={"To": to, "Subject": subject, "Text": body, "IsHtml": True},
            authentication=dict(APIM_AUTHENTICATION),
        ),
        run_after=run_after or {},
    )


def create_send_email_from_shared_mailbox_action(
    mailbox_address: str,
    to: str,
    subject: str,
    body: str,
    connection_name: str,
    api_id: str = OUTLOOK_API_ID,
    importance: Literal["Low", "Normal", "High"] = "Normal",
    cc: str | None = None,
    bcc: str | None = None,
    authentication: Any = AUTHENTICATION_EXPRESSION,
    run_after: dict[str, list[str]] | None = None,
) -> ConnectorAction:
    """Office 365 Outlook "Send an email from a shared mailbox (V2)".

    Uses the flat host shape (connectionName/apiId/operationId) with
    ``emailMessage/*`` parameters, as exported OpenApiConnection operations do.
    """
    parameters = {
        "emailMessage/MailboxAddress": mailbox_address,
        "emailMessage/To": to,
        "emailMessage/Subject": subject,
        "emailMessage/Body": body,
        "emailMessage/Importance": importance,
    }
    if cc:
        parameters["emailMessage/Cc"] = cc
    if bcc:
        parameters["emailMessage/Bcc"] = bcc

    return ConnectorAction(
        inputs=ApiConnectionInputs(
            host=Host(
                connection_name=connection_name,
                api_id=api_id,
                operation_id="SharedMailboxSendEmailV2",
            ),
            parameters=parameters,
            authentication=authentication,
        ),
        run_after=run_after or {},
    )
