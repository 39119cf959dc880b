"""Solution registry: maps catalogue names to solution classes."""

from __future__ import annotations

from typing import Type

from ..errors import ResolutionError
from .base import BaseSolution

# Populated via @register decorator
_REGISTRY: dict[str, Type[BaseSolution]] = {}


def register(cls: Type[BaseSolution]) -> Type[BaseSolution]:
    """Class decorator that adds a solution to the catalogue."""
    _REGISTRY[cls.name] = cls
    return cls


def list_solutions() -> list[str]:
    return sorted(_REGISTRY)


def get_solution(name: str) -> BaseSolution:
    """Instantiate a catalogue solution, or raise ResolutionError."""
    cls = _REGISTRY.get(name)
    if cls is None:
        raise ResolutionError(name, list_solutions())
    return cls()
