"""Exception hierarchy for the Vibe Coding MCP toolkit.

Every error raised by the toolkit derives from ``VibeCodingMCPError`` so that
the MCP tool layer can turn it into a structured ``{"success": False, ...}``
response instead of letting it escape the server.
"""

from __future__ import annotations

from typing import Any


class VibeCodingMCPError(Exception):
    """Base class for all toolkit errors.

    Args:
        message: Technical message (also used as ``str(error)``)
        error_code: Stable machine-readable code
        details: Extra structured context
        user_message: Message suitable for showing to the assistant/user
    """

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.user_message = user_message or message

    def to_dict(self) -> dict[str, Any]:
        """Convert the error into a serializable dictionary."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "user_message": self.user_message,
            "details": self.details,
        }


class ValidationError(VibeCodingMCPError):
    """Invalid input supplied to a tool or to the batch engine."""

    def __init__(self, message: str, field: str | None = None, value: Any = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        if field:
            details["field"] = field
        if value is not None:
            details["invalid_value"] = value
        super().__init__(message, error_code="VALIDATION_ERROR", details=details, **kwargs)


class NotFoundError(VibeCodingMCPError):
    """A requested resource does not exist."""

    def __init__(self, resource: str, identifier: str, details: dict[str, Any] | None = None):
        merged = {"resource": resource, "identifier": identifier}
        merged.update(details or {})
        super().__init__(
            f"{resource} not found: {identifier}",
            error_code="NOT_FOUND",
            details=merged,
            user_message=f"{resource} not found: {identifier}",
        )
        self.identifier = identifier


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: str):
        super().__init__("Session", session_id)


class TemplateNotFoundError(NotFoundError):
    def __init__(self, template_id: str):
        super().__init__("Template", template_id)


class JobNotFoundError(NotFoundError):
    def __init__(self, job_id: str):
        super().__init__("Job", job_id)


class CircularDependencyError(VibeCodingMCPError):
    """The dependency graph of a batch contains a cycle."""

    def __init__(self, operation_ids: list[str] | None = None):
        super().__init__(
            "Circular dependency detected in batch operations",
            error_code="CIRCULAR_DEPENDENCY",
            details={"unresolved_operations": operation_ids or []},
        )


class UnknownToolError(VibeCodingMCPError):
    """A batch operation names a tool that is not registered."""

    def __init__(self, tool: str):
        super().__init__(f"Unknown tool: {tool}", error_code="UNKNOWN_TOOL", details={"tool": tool})
        self.tool = tool


class OperationTimeoutError(VibeCodingMCPError):
    """A tool invocation did not finish within its timeout."""

    def __init__(self, operation_id: str, timeout_ms: float):
        super().__init__(
            f"Operation timed out after {timeout_ms:g}ms",
            error_code="TIMEOUT",
            details={"operation_id": operation_id, "timeout_ms": timeout_ms},
        )


class GitCommandError(VibeCodingMCPError):
    """A git subprocess failed."""

    def __init__(self, message: str, args: list[str] | None = None, stderr: str = ""):
        super().__init__(
            message,
            error_code="GIT_ERROR",
            details={"git_args": args or [], "stderr": stderr.strip()},
        )


class NotAGitRepositoryError(GitCommandError):
    def __init__(self, path: str):
        super().__init__(
            f'Not a git repository: {path}. Initialize with "git init" or specify a valid repository path.'
        )
        self.details["path"] = path
