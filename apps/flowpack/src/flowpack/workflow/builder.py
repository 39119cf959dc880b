"""FlowBuilder assembles one workflow definition for solution packaging."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import Any

from ..config import DEFAULT_CONNECTION_ID
from .discovery import discover_action, discover_trigger
from .schema import (
    ActionNode,
    ClientData,
    ClientDataProperties,
    ConnectionReference,
    FlowDefinition,
    ParameterDefinition,
    TriggerNode,
    WorkflowDefinition,
)

logger = logging.getLogger(__name__)


class FlowBuilder:
    """Owns a trigger/action graph and the connectors it references.

    Connectors are discovered as nodes are added, so the connector map is
    always in step with the graph.
    """

    def __init__(
        self,
        display_name: str,
        description: str | None = None,
        *,
        connection_id: str = DEFAULT_CONNECTION_ID,
        id_factory: Callable[[], Any] = uuid.uuid4,
    ):
        self.workflow_id = str(id_factory())
        self.display_name = display_name
        self.description = description
        self.connection_id = connection_id
        self._triggers: dict[str, TriggerNode] = {}
        self._actions: dict[str, ActionNode] = {}
        self._connectors: dict[str, str] = {}

    @property
    def connectors(self) -> dict[str, str]:
        """Connectors used by this flow: {logical name: API resource id}."""
        return dict(self._connectors)

    @property
    def triggers(self) -> dict[str, TriggerNode]:
        return dict(self._triggers)

    @property
    def actions(self) -> dict[str, ActionNode]:
        return dict(self._actions)

    def add_trigger(self, name: str, trigger: TriggerNode) -> FlowBuilder:
        self._triggers[name] = trigger
        discover_trigger(trigger, self._connectors)
        return self

    def add_action(self, name: str, action: ActionNode) -> FlowBuilder:
        self._actions[name] = action
        discover_action(action, self._connectors)
        return self

    def get_definition(self) -> ClientData:
        """Build the client data document for the workflow entity."""
        if not self._triggers:
            logger.warning("Flow %r has no triggers; the importer will reject it", self.display_name)

        connection_references = {
            name: ConnectionReference(connection_name=self.connection_id, id=api_id)
            for name, api_id in self._connectors.items()
        }
        connections_default = {
            name: {"connectionId": self.connection_id} for name in self._connectors
        }

        definition = WorkflowDefinition(
            parameters={
                "$connections": ParameterDefinition(type="Object", default_value=connections_default),
                "$authentication": ParameterDefinition(type="SecureObject", default_value={}),
            },
            triggers=dict(self._triggers),
            actions=dict(self._actions),
        )
        return ClientData(
            properties=ClientDataProperties(
                connection_references=connection_references,
                definition=definition,
            )
        )

    def to_flow_definition(self) -> FlowDefinition:
        return FlowDefinition(
            workflow_id=self.workflow_id,
            display_name=self.display_name,
            definition=self.get_definition(),
            connectors=self.connectors,
        )


def create_workflow(
    display_name: str,
    description: str | None = None,
    *,
    connection_id: str = DEFAULT_CONNECTION_ID,
    id_factory: Callable[[], Any] = uuid.uuid4,
) -> FlowBuilder:
    """Start a new workflow with a freshly generated id."""
    builder = FlowBuilder(
        display_name,
        description,
        connection_id=connection_id,
        id_factory=id_factory,
    )
    logger.debug("Created workflow %s (%s)", display_name, builder.workflow_id)
    return builder
