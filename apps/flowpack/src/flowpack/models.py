"""API models for FlowPack."""

from typing import Optional
from pydantic import BaseModel, Field


class PackageRequest(BaseModel):
    """Request to build a solution package from a catalogue example."""

    solution_name: Optional[str] = Field(
        None,
        description="Solution unique name; derived from the example name when omitted",
    )
    solution_version: Optional[str] = Field(
        None,
        description="Solution version, e.g. 1.0.0.0",
    )
    managed: bool = Field(False, description="Mark the solution as managed")
    inputs: dict[str, str] = Field(
        default_factory=dict,
        description="Dynamic inputs required by the example (e.g. list ids, site URLs)",
    )


class SolutionSummary(BaseModel):
    """A catalogue entry."""

    name: str
    summary: str
    required_inputs: list[str]
    optional_inputs: list[str]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str = "FlowPack"
