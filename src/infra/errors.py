"""Custom exception hierarchy for the coordinator.

All application-specific exceptions inherit from CoordinatorError,
which carries an error code surfaced to role agents and logs.
"""

from __future__ import annotations


class CoordinatorError(Exception):
    """Base exception for all coordinator errors."""

    def __init__(self, message: str, *, code: str = "INTERNAL_ERROR") -> None:
        super().__init__(message)
        self.code = code


class CapabilityError(CoordinatorError):
    """A workspace capability call was rejected or failed."""

    def __init__(self, message: str, *, code: str = "CAPABILITY_ERROR") -> None:
        super().__init__(message, code=code)


class PathEscapeError(CapabilityError):
    """Path resolves outside the workspace root."""

    def __init__(self, message: str = "Path escapes workspace boundary.") -> None:
        super().__init__(message, code="ACCESS_DENIED")


class CommandBlockedError(CapabilityError):
    """Shell command rejected by the allow-list."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="COMMAND_BLOCKED")


class CapabilityDeniedError(CapabilityError):
    """Tool is not part of the invoking role's capability set."""

    def __init__(self, message: str = "Tool not available to this role") -> None:
        super().__init__(message, code="TOOL_DENIED")


class InvocationError(CoordinatorError):
    """The role-execution mechanism failed to complete a turn."""

    def __init__(self, message: str, *, code: str = "INVOCATION_ERROR") -> None:
        super().__init__(message, code=code)


class LLMError(InvocationError):
    """A model call failed (timeout, rate limit, API error, empty reply).

    role names the agent whose turn failed, when known.
    """

    def __init__(
        self, message: str, *, code: str = "LLM_ERROR", role: str | None = None
    ) -> None:
        super().__init__(message, code=code)
        self.role = role


class StatePersistError(CoordinatorError):
    """Durable state snapshot could not be written. Stops the run."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="STATE_PERSIST_ERROR")
