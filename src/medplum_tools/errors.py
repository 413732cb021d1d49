"""Fault hierarchy shared by the client, the validator and the dispatcher.

The HTTP client turns every failed Medplum response into one of these
classes, so the result normalizer matches on a closed set of fault kinds
instead of probing the shape of arbitrary exceptions.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class ToolServerError(Exception):
    """Base class for every fault raised by this package."""


class DuplicateToolError(ToolServerError):
    """Raised at startup when two tools are registered under one name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Duplicate tool name: {name}")


class UnknownToolError(ToolServerError):
    """Raised when an invocation names a tool the catalog does not have."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class ValidationError(ToolServerError):
    """Raised when invocation arguments do not match the tool's schema."""

    def __init__(self, tool_name: str, violations: Sequence[str]) -> None:
        self.tool_name = tool_name
        self.violations = list(violations)
        super().__init__(
            f"Invalid arguments for {tool_name}: " + "; ".join(self.violations)
        )


class UnknownActionError(ToolServerError):
    """Raised when a discriminant value is outside a tool's enumeration."""

    def __init__(self, field: str, value: Any, valid: Sequence[str]) -> None:
        self.field = field
        self.value = value
        self.valid = list(valid)
        super().__init__(
            f"Unknown {field}: {value}. Valid: {', '.join(self.valid)}"
        )


class AuthenticationError(ToolServerError):
    """Raised when credentials are missing or the token exchange fails."""


class RemoteOperationError(ToolServerError):
    """Raised when Medplum answers with an error status.

    Attributes:
        status_code: HTTP status of the response (0 for transport failures).
        diagnostic: Human-readable message taken from the OperationOutcome
            when the server sent one, otherwise the raw response text.
        outcome: The OperationOutcome document, if any.
    """

    def __init__(
        self,
        status_code: int,
        diagnostic: str,
        outcome: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.diagnostic = diagnostic
        self.outcome = outcome
        super().__init__(diagnostic)

    @property
    def issue_code(self) -> str | None:
        """The `code` of the first OperationOutcome issue, if present."""
        issues = (self.outcome or {}).get("issue") or []
        if issues and isinstance(issues[0], dict):
            return issues[0].get("code")
        return None


class NotFoundError(RemoteOperationError):
    """Raised when Medplum reports that the requested resource does not exist."""
