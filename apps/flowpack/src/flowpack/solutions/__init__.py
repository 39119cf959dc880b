"""Catalogue of example solutions.

Usage:
    from flowpack.solutions import get_solution, list_solutions

    solution = get_solution("sharepoint-approval-flow")
"""

from .base import BaseSolution, FlowConfig
from .registry import get_solution, list_solutions, register

# Import all built-in solutions to trigger @register decoration
from . import (  # noqa: E402, F401
    pip_notification,
    scheduled_report,
    sharepoint_approval,
    sharepoint_approval_advanced,
)

__all__ = ["BaseSolution", "FlowConfig", "get_solution", "list_solutions", "register"]
