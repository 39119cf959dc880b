"""Base interface for catalogue solutions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..errors import ConfigurationError

if TYPE_CHECKING:
    from ..config import Settings
    from ..workflow.builder import FlowBuilder


@dataclass
class FlowConfig:
    """What a solution contributes: flow identity plus a step-adding callback."""

    display_name: str
    description: str
    add_steps: Callable[[FlowBuilder], None]


class BaseSolution(ABC):
    """A named example solution that configures one flow.

    Subclasses declare the dynamic inputs they need; configure_flow is only
    called once required_inputs are all present.
    """

    name: str = ""
    summary: str = ""
    required_inputs: tuple[str, ...] = ()
    optional_inputs: tuple[str, ...] = ()

    def validate_inputs(self, inputs: dict[str, str]) -> None:
        missing = [key for key in self.required_inputs if not inputs.get(key)]
        if missing:
            flags = ", ".join(f"--input {key}=..." for key in missing)
            raise ConfigurationError(
                f"For solution '{self.name}', you must provide {flags}",
                missing=missing,
            )

    @abstractmethod
    def configure_flow(self, settings: Settings, inputs: dict[str, str]) -> FlowConfig:
        """Return the flow configuration for these settings and inputs."""
        ...
