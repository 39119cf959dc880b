"""Pydantic models for workflow triggers, actions and definition documents.

Models serialize with the workflow definition language's own key names
(``runAfter``, ``else``, ``splitOn``...) via aliases. Unknown keys are kept so
hand-authored definitions survive a load/dump cycle, but every node must carry
a ``type`` the model knows about.
"""

from __future__ import annotations

import itertools
from collections.abc import Iterator
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

DEFINITION_SCHEMA = (
    "https://schema.management.azure.com/providers/Microsoft.Logic/schemas/"
    "2016-06-01/workflowdefinition.json#"
)
CONTENT_VERSION = "1.0.0.0"

# Node types that call an external connector through inputs.host
CONNECTOR_TYPES = (
    "ApiConnection",
    "ApiConnectionWebhook",
    "OpenApiConnection",
    "OpenApiConnectionWebhook",
)
ConnectorType = Literal[
    "ApiConnection", "ApiConnectionWebhook", "OpenApiConnection", "OpenApiConnectionWebhook"
]

# Where each composite action keeps its nested action maps. Paths use JSON
# key names; "*" steps into every value of a mapping.
NESTED_ACTION_FIELDS: dict[str, tuple[str, ...]] = {
    "If": ("actions", "else.actions"),
    "Switch": ("cases.*.actions", "default.actions"),
    "Foreach": ("actions",),
    "Scope": ("inputs.actions",),
    "Until": ("actions",),
}


class FlowModel(BaseModel):
    """Base for definition documents."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Connector host descriptors
# ---------------------------------------------------------------------------


class Connection(FlowModel):
    name: str | None = None  # "@parameters('$connections')['<name>']['connectionId']"


class ApiReference(FlowModel):
    id: str | None = None  # "/providers/Microsoft.PowerApps/apis/<name>"
    name: str | None = None
    type: str | None = None


class Host(FlowModel):
    """inputs.host of a connector-bound trigger or action."""

    connection: Connection | None = None
    api: ApiReference | None = None
    # Flat shape used by exported flow manifests
    connection_name: str | None = Field(None, alias="connectionName")
    api_id: str | None = Field(None, alias="apiId")
    operation_id: str | None = Field(None, alias="operationId")


class ApiConnectionInputs(FlowModel):
    host: Host | None = None
    method: str | None = None
    path: str | None = None
    # OpenApiConnection operations take flat "parameters" instead of path/body
    parameters: dict[str, Any] | None = None
    queries: dict[str, Any] | None = None
    headers: dict[str, Any] | None = None
    body: Any = None
    authentication: Any = None


class HttpInputs(FlowModel):
    method: str
    uri: str
    queries: dict[str, Any] | None = None
    headers: dict[str, Any] | None = None
    body: Any = None
    authentication: Any = None


class Recurrence(FlowModel):
    frequency: Literal["Second", "Minute", "Hour", "Day", "Week", "Month", "Year"]
    interval: int = 1
    start_time: str | None = Field(None, alias="startTime")
    time_zone: str | None = Field(None, alias="timeZone")
    schedule: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------


class TriggerBase(FlowModel):
    kind: str | None = None
    recurrence: Recurrence | None = None
    split_on: str | None = Field(None, alias="splitOn")
    conditions: list[dict[str, Any]] | None = None
    metadata: dict[str, Any] | None = None


class RecurrenceTrigger(TriggerBase):
    type: Literal["Recurrence"] = "Recurrence"
    recurrence: Recurrence
    inputs: dict[str, Any] | None = None


class RequestTrigger(TriggerBase):
    type: Literal["Request"] = "Request"
    kind: str | None = "Button"
    inputs: dict[str, Any] | None = None


class ConnectorTrigger(TriggerBase):
    type: ConnectorType = "ApiConnection"
    inputs: ApiConnectionInputs


class HttpTrigger(TriggerBase):
    type: Literal["Http"] = "Http"
    inputs: HttpInputs


Trigger = Annotated[
    Union[RecurrenceTrigger, RequestTrigger, ConnectorTrigger, HttpTrigger],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class ActionBase(FlowModel):
    run_after: dict[str, list[str]] | None = Field(None, alias="runAfter")
    metadata: dict[str, Any] | None = None
    kind: str | None = None


class ConnectorAction(ActionBase):
    type: ConnectorType = "ApiConnection"
    inputs: ApiConnectionInputs


class HttpAction(ActionBase):
    type: Literal["Http"] = "Http"
    inputs: HttpInputs


class ComposeAction(ActionBase):
    type: Literal["Compose"] = "Compose"
    inputs: Any = None


class VariableAction(ActionBase):
    type: Literal[
        "InitializeVariable",
        "SetVariable",
        "AppendToArrayVariable",
        "AppendToStringVariable",
        "IncrementVariable",
        "DecrementVariable",
    ]
    inputs: dict[str, Any]


class TerminateAction(ActionBase):
    type: Literal["Terminate"] = "Terminate"
    inputs: dict[str, Any]


class DataOperationAction(ActionBase):
    """Data operations: parse, filter, project and join arrays or build tables."""

    type: Literal["ParseJson", "Query", "Select", "Join", "Table"]
    inputs: dict[str, Any]


class ResponseAction(ActionBase):
    type: Literal["Response"] = "Response"
    inputs: dict[str, Any]


class WaitAction(ActionBase):
    type: Literal["Wait"] = "Wait"
    inputs: dict[str, Any]  # {"interval": {"count": n, "unit": "Hour"}} or {"until": {...}}


class Branch(FlowModel):
    actions: dict[str, Action] = Field(default_factory=dict)


class SwitchCase(Branch):
    case: Any = None


class IfAction(ActionBase):
    type: Literal["If"] = "If"
    expression: Any
    actions: dict[str, Action] = Field(default_factory=dict)
    else_: Branch | None = Field(None, alias="else")


class SwitchAction(ActionBase):
    type: Literal["Switch"] = "Switch"
    expression: Any
    cases: dict[str, SwitchCase] = Field(default_factory=dict)
    default: Branch | None = None


class ForeachAction(ActionBase):
    type: Literal["Foreach"] = "Foreach"
    foreach: str
    actions: dict[str, Action] = Field(default_factory=dict)


class UntilAction(ActionBase):
    type: Literal["Until"] = "Until"
    expression: Any
    limit: dict[str, Any] | None = None
    actions: dict[str, Action] = Field(default_factory=dict)


class ScopeInputs(FlowModel):
    actions: dict[str, Action] = Field(default_factory=dict)


class ScopeAction(ActionBase):
    type: Literal["Scope"] = "Scope"
    inputs: ScopeInputs = Field(default_factory=ScopeInputs)


Action = Annotated[
    Union[
        ConnectorAction,
        HttpAction,
        ComposeAction,
        VariableAction,
        TerminateAction,
        DataOperationAction,
        ResponseAction,
        WaitAction,
        IfAction,
        SwitchAction,
        ForeachAction,
        UntilAction,
        ScopeAction,
    ],
    Field(discriminator="type"),
]

ActionNode = Union[
    ConnectorAction,
    HttpAction,
    ComposeAction,
    VariableAction,
    TerminateAction,
    DataOperationAction,
    ResponseAction,
    WaitAction,
    IfAction,
    SwitchAction,
    ForeachAction,
    UntilAction,
    ScopeAction,
]
TriggerNode = Union[RecurrenceTrigger, RequestTrigger, ConnectorTrigger, HttpTrigger]


# ---------------------------------------------------------------------------
# Definition documents
# ---------------------------------------------------------------------------


class ParameterDefinition(FlowModel):
    type: str
    default_value: Any = Field(None, alias="defaultValue")


class WorkflowDefinition(FlowModel):
    """The definition language document: parameters, triggers and actions."""

    schema_: str = Field(DEFINITION_SCHEMA, alias="$schema")
    content_version: str = Field(CONTENT_VERSION, alias="contentVersion")
    parameters: dict[str, ParameterDefinition] = Field(default_factory=dict)
    triggers: dict[str, Trigger] = Field(default_factory=dict)
    actions: dict[str, Action] = Field(default_factory=dict)
    outputs: dict[str, Any] | None = None
    description: str | None = None


class ConnectionReference(FlowModel):
    connection_name: str = Field(alias="connectionName")
    id: str
    source: str = "Invoker"


class ClientDataProperties(FlowModel):
    connection_references: dict[str, ConnectionReference] = Field(
        default_factory=dict, alias="connectionReferences"
    )
    definition: WorkflowDefinition


class ClientData(FlowModel):
    """Workflow entity content stored in a solution's Workflows/ folder."""

    schema_version: str = Field(CONTENT_VERSION, alias="schemaVersion")
    properties: ClientDataProperties


class FlowDefinition(BaseModel):
    """One assembled workflow handed to the solution serializer."""

    workflow_id: str
    display_name: str
    definition: ClientData
    connectors: dict[str, str] = Field(default_factory=dict)


class FlowManifestProperties(FlowModel):
    api_id: str | None = Field(None, alias="apiId")
    display_name: str = Field(alias="displayName")
    description: str | None = None
    definition: WorkflowDefinition
    connection_references: dict[str, Any] | None = Field(None, alias="connectionReferences")


class FlowManifest(FlowModel):
    """An exported single flow (``/providers/Microsoft.Flow/flows/<guid>``)."""

    id: str
    name: str | None = None
    type: str = "Microsoft.Flow/flows"
    properties: FlowManifestProperties


for _model in (Branch, SwitchCase, IfAction, ForeachAction, UntilAction, SwitchAction, ScopeInputs,
               ScopeAction, WorkflowDefinition, ClientDataProperties, ClientData, FlowDefinition,
               FlowManifestProperties, FlowManifest):
    _model.model_rebuild()


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


def _json_field(node: Any, key: str) -> Any:
    """Look up a model field by JSON key (alias) or attribute name."""
    if isinstance(node, dict):
        return node.get(key)
    for name, info in type(node).model_fields.items():
        if key == name or key == info.alias:
            return getattr(node, name)
    return None


def iter_nested_action_maps(action: ActionNode) -> Iterator[dict[str, ActionNode]]:
    """Yield every nested action map of a single action (not recursive)."""
    for path in NESTED_ACTION_FIELDS.get(action.type, ()):
        targets: list[Any] = [action]
        for key in path.split("."):
            resolved: list[Any] = []
            for target in targets:
                if key == "*":
                    resolved.extend(target.values())
                    continue
                value = _json_field(target, key)
                if value is not None:
                    resolved.append(value)
            targets = resolved
        yield from targets


def walk_actions(actions: dict[str, ActionNode]) -> Iterator[tuple[str, ActionNode]]:
    """Yield (name, action) for every action at every depth, depth-first.

    Uses an explicit stack so nesting depth is not bound by the recursion limit.
    """
    stack = [iter(actions.items())]
    while stack:
        try:
            name, action = next(stack[-1])
        except StopIteration:
            stack.pop()
            continue
        yield name, action
        nested = list(iter_nested_action_maps(action))
        if nested:
            stack.append(itertools.chain.from_iterable(m.items() for m in nested))
