"""Export pipeline: catalogue name + inputs -> solution metadata -> flows -> zip."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ..config import Settings, get_settings
from ..packaging.metadata import PublisherInfo, SolutionInfo
from ..packaging.solution import build_solution_package, export_solution_package
from ..solutions import get_solution
from .builder import create_workflow
from .schema import FlowDefinition

logger = logging.getLogger(__name__)

DEFAULT_SOLUTION_VERSION = "1.0.0.0"


def solution_info_for(
    example: str,
    publisher: PublisherInfo,
    solution_name: str | None = None,
    version: str | None = None,
    managed: bool = False,
) -> SolutionInfo:
    """Derive solution metadata for a catalogue example.

    Without an explicit solution_name the unique name is
    ``<prefix>_<example>_Solution``.
    """
    if solution_name:
        unique_name = solution_name
        localized_name = f"{solution_name} Solution"
    else:
        unique_name = f"{publisher.prefix}_{example}_Solution"
        localized_name = f"{example[:1].upper() + example[1:]} Example Solution"
    return SolutionInfo(
        unique_name=unique_name,
        localized_name=localized_name,
        version=version or DEFAULT_SOLUTION_VERSION,
        description=f"Solution generated by Flow Creator for the {example} example.",
        managed=managed,
    )


def prepare_solution(
    example: str,
    inputs: dict[str, str] | None = None,
    *,
    settings: Settings | None = None,
    solution_name: str | None = None,
    version: str | None = None,
    managed: bool = False,
    id_factory: Callable[[], Any] = uuid.uuid4,
) -> tuple[SolutionInfo, PublisherInfo, list[FlowDefinition]]:
    """Resolve a catalogue example and build its flows.

    Raises ResolutionError for an unknown example and ConfigurationError when
    required inputs are missing; both happen before any flow is built.
    """
    settings = settings or get_settings()
    inputs = dict(inputs or {})

    solution = get_solution(example)
    solution.validate_inputs(inputs)

    publisher = settings.publisher_info()
    info = solution_info_for(example, publisher, solution_name, version, managed)

    config = solution.configure_flow(settings, inputs)
    builder = create_workflow(
        config.display_name,
        config.description,
        connection_id=settings.default_connection_id,
        id_factory=id_factory,
    )
    config.add_steps(builder)
    flow = builder.to_flow_definition()
    logger.info(
        "Built flow %r (%s) with connectors: %s",
        flow.display_name,
        flow.workflow_id,
        ", ".join(flow.connectors) or "(none)",
    )
    return info, publisher, [flow]


def build_solution(example: str, inputs: dict[str, str] | None = None, **kwargs: Any) -> tuple[SolutionInfo, bytes]:
    """Build a catalogue solution in memory; returns its metadata and zip bytes."""
    info, publisher, flows = prepare_solution(example, inputs, **kwargs)
    return info, build_solution_package(info, publisher, flows)


def export_solution(
    example: str,
    inputs: dict[str, str] | None = None,
    output_dir: Path | str | None = None,
    **kwargs: Any,
) -> Path:
    """Build a catalogue solution and write it under output_dir."""
    settings = kwargs.get("settings") or get_settings()
    kwargs["settings"] = settings
    info, publisher, flows = prepare_solution(example, inputs, **kwargs)
    return export_solution_package(info, publisher, flows, output_dir or settings.output_dir)
