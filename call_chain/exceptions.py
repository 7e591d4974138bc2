"""
Custom exception hierarchy for the call_chain package.

The analysis core reports "not found" as ``None`` and unresolvable calls as
external nodes; exceptions are reserved for the edges of the system (reading
project files, validating input, configuration) so callers can handle
specific failure modes.
"""


class CallChainError(Exception):
    """Base exception for all call_chain errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


# --- Source Errors ---

class SourceError(CallChainError):
    """Base exception for project source access errors."""
    pass


class SourceReadError(SourceError):
    """A project file could not be read."""

    def __init__(self, file_path: str, reason: str = "Unknown error"):
        super().__init__(
            f"Failed to read '{file_path}': {reason}",
            details={"file_path": file_path, "reason": reason}
        )


class SourceNotFoundError(SourceError):
    """Requested file is not part of the project."""

    def __init__(self, file_path: str, project_root: str = ""):
        msg = f"File '{file_path}' not found"
        if project_root:
            msg += f" in project '{project_root}'"
        super().__init__(msg, details={"file_path": file_path, "project_root": project_root})


# --- Validation Errors ---

class ValidationError(CallChainError):
    """Input validation failed."""

    def __init__(self, field: str, message: str):
        super().__init__(
            f"Validation error for '{field}': {message}",
            details={"field": field, "message": message}
        )


class InvalidDirectionError(ValidationError):
    """Unknown traversal direction requested."""

    def __init__(self, direction: str, valid_directions: tuple = ("up", "down")):
        super().__init__(
            field="direction",
            message=f"Unknown direction '{direction}'. Valid: {sorted(valid_directions)}"
        )
        self.details["direction"] = direction
        self.details["valid_directions"] = sorted(valid_directions)


# --- Configuration Errors ---

class ConfigurationError(CallChainError):
    """Configuration values are unusable."""

    def __init__(self, problems: list):
        super().__init__(
            "Invalid configuration: " + "; ".join(problems),
            details={"problems": list(problems)}
        )
