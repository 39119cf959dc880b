"""Error types raised while preparing and packaging solutions."""


class FlowPackError(Exception):
    """Base class for errors reported to the operator."""

    def __init__(self, message: str, error_type: str = "flowpack_error"):
        self.error_type = error_type
        super().__init__(message)


class ConfigurationError(FlowPackError):
    """Raised when a solution is missing a required dynamic input."""

    def __init__(self, message: str, missing: list[str] | None = None):
        self.missing = missing or []
        super().__init__(message, "missing_input")


class ResolutionError(FlowPackError):
    """Raised when a named solution module is not in the catalogue."""

    def __init__(self, name: str, available: list[str]):
        self.name = name
        self.available = available
        super().__init__(
            f"Solution '{name}' not found. Available solutions: {', '.join(available) or '(none)'}",
            "unknown_solution",
        )
