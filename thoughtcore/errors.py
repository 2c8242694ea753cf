"""Error taxonomy shared by the registry, dispatch layer and orchestrator."""
from typing import Optional


class ThoughtCoreError(Exception):
    """Base class for every error raised by thoughtcore."""


class ValidationError(ThoughtCoreError, ValueError):
    """Malformed descriptor, filter, option or analyzer input."""


class DuplicateToolError(ValidationError):
    def __init__(self, name: str):
        super().__init__(f"Tool already registered: {name}")
        self.name = name


class NotFoundError(ThoughtCoreError, LookupError):
    """Unknown tool, incorporation rule or session reference."""


class SessionStateError(ThoughtCoreError):
    """Raised when a terminal session is reused."""


class ThinkingTimeoutError(ThoughtCoreError, TimeoutError):
    def __init__(self, session_id: str, timeout_ms: float):
        super().__init__(f"Session {session_id} timed out after {timeout_ms:g} ms")
        self.session_id = session_id
        self.timeout_ms = timeout_ms


class ToolExecutionError(ThoughtCoreError):
    """A tool call failed inside the session step loop."""

    def __init__(self, tool: str, message: str, cause: Optional[str] = None):
        super().__init__(message)
        self.tool = tool
        self.cause = cause
