"""Daily report: fetch a report endpoint and mail the result."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..errors import ConfigurationError
from ..templates import (
    SCHEDULE_FREQUENCIES,
    create_compose_action,
    create_http_action,
    create_scheduled_trigger,
    create_scope_action,
    create_send_email_action,
)
from ..workflow.discovery import API_RESOURCE_PREFIX
from .base import BaseSolution, FlowConfig
from .registry import register

if TYPE_CHECKING:
    from ..config import Settings
    from ..workflow.builder import FlowBuilder

DEFAULT_FREQUENCY = "Day"


@register
class ScheduledReportSolution(BaseSolution):
    name = "scheduled-report"
    summary = "Calls a report URL on a schedule and emails the response"
    required_inputs = ("report_url",)
    optional_inputs = ("recipients", "frequency")

    def schedule_frequency(self, inputs: dict[str, str]) -> str:
        """Return the recurrence frequency, matched case-insensitively."""
        value = inputs.get("frequency") or DEFAULT_FREQUENCY
        for frequency in SCHEDULE_FREQUENCIES:
            if value.strip().lower() == frequency.lower():
                return frequency
        raise ConfigurationError(
            f"For solution '{self.name}', frequency must be one of "
            f"{', '.join(SCHEDULE_FREQUENCIES)} (got {value!r})"
        )

    def validate_inputs(self, inputs: dict[str, str]) -> None:
        super().validate_inputs(inputs)
        self.schedule_frequency(inputs)

    def configure_flow(self, settings: Settings, inputs: dict[str, str]) -> FlowConfig:
        report_url = inputs["report_url"]
        recipients = settings.environment_recipients(inputs.get("recipients") or settings.admin_email)
        frequency = self.schedule_frequency(inputs)
        outlook = settings.outlook_connection

        def add_steps(flow: FlowBuilder) -> None:
            flow.add_trigger("runOnSchedule", create_scheduled_trigger(frequency, 1))
            flow.add_action(
                "produceReport",
                create_scope_action(
                    {
                        "fetchReport": create_http_action("GET", report_url),
                        "formatReport": create_compose_action(
                            "@{body('fetchReport')}",
                            run_after={"fetchReport": ["Succeeded"]},
                        ),
                    }
                ),
            )
            flow.add_action(
                "mailReport",
                create_send_email_action(
                    "Scheduled report @{formatDateTime(utcNow(), 'yyyy-MM-dd')}",
                    "@{outputs('formatReport')}",
                    recipients,
                    outlook,
                    API_RESOURCE_PREFIX + outlook,
                    run_after={"produceReport": ["Succeeded"]},
                ),
            )

        return FlowConfig(
            display_name="Scheduled Report",
            description=f"Mails the response of {report_url} every {frequency.lower()}",
            add_steps=add_steps,
        )
