"""thoughtcore: routes thinking requests to tools and runs bounded tool sessions."""
from .config import Settings, settings
from .errors import (
    DuplicateToolError,
    NotFoundError,
    SessionStateError,
    ThinkingTimeoutError,
    ThoughtCoreError,
    ToolExecutionError,
    ValidationError,
)
from .orchestrator import ProcessOptions, ThoughtOrchestrator
from .session import HistoryItem, SessionStatus, ThinkingSession

__version__ = "0.1.0"
