"""Builders for common triggers and actions.

Each function returns a schema node ready to hand to FlowBuilder.add_trigger
or FlowBuilder.add_action.
"""

from .actions import (
    connection_name_expression,
    create_compose_action,
    create_condition_action,
    create_foreach_action,
    create_http_action,
    create_increment_variable_action,
    create_initialize_variable_action,
    create_scope_action,
    create_send_email_action,
    create_send_email_from_shared_mailbox_action,
    create_sendmail_action,
    create_set_variable_action,
    create_sharepoint_create_item_action,
    create_sharepoint_get_items_action,
    create_switch_action,
)
from .triggers import (
    SCHEDULE_FREQUENCIES,
    create_manual_trigger,
    create_outlook_email_trigger,
    create_scheduled_trigger,
    create_sharepoint_item_trigger,
)

__all__ = [
    "SCHEDULE_FREQUENCIES",
    "connection_name_expression",
    "create_compose_action",
    "create_condition_action",
    "create_foreach_action",
    "create_http_action",
    "create_increment_variable_action",
    "create_initialize_variable_action",
    "create_manual_trigger",
    "create_outlook_email_trigger",
    "create_scheduled_trigger",
    "create_scope_action",
    "create_send_email_action",
    "create_send_email_from_shared_mailbox_action",
    "create_sendmail_action",
    "create_set_variable_action",
    "create_sharepoint_create_item_action",
    "create_sharepoint_get_items_action",
    "create_sharepoint_item_trigger",
    "create_switch_action",
]
