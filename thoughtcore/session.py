"""Thinking session state: status machine and audit history."""
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import SessionStateError
from .tools.analyzer import ToolScore


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class IncorporationSummary:
    source: str
    incorporated_count: int
    success: bool


@dataclass
class HistoryItem:
    """One step of a session: which tool ran, on what, and what came out."""
    timestamp: str
    tool: str
    input: Any
    confidence: float = 0.0
    output: Any = None
    alternatives: Optional[List[ToolScore]] = None
    incorporated: Optional[List[IncorporationSummary]] = None
    error: Optional[str] = None


class ThinkingSession:
    """State of one bounded run of the step loop.

    ``active`` is the only non-terminal status; once ``completed`` or
    ``error`` the session rejects further history and status changes.
    """

    def __init__(self, initial_request: Any, context: Optional[Dict[str, Any]] = None,
                 session_id: Optional[str] = None):
        self.id = session_id or f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
        now = utc_now()
        self.created_at = now
        self.updated_at = now
        self.initial_request = initial_request
        self.history: List[HistoryItem] = []
        self.context: Dict[str, Any] = dict(context or {})
        self.status = SessionStatus.ACTIVE
        self.result: Any = None
        self.error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not SessionStatus.ACTIVE

    def _ensure_active(self):
        if self.is_terminal:
            raise SessionStateError(f"Session {self.id} is already {self.status.value}")

    def touch(self):
        self.updated_at = utc_now()

    def append(self, item: HistoryItem):
        self._ensure_active()
        self.history.append(item)
        self.touch()

    def complete(self, result: Any):
        self._ensure_active()
        self.status = SessionStatus.COMPLETED
        self.result = result
        self.touch()

    def fail(self, error: str):
        self._ensure_active()
        self.status = SessionStatus.ERROR
        self.error = error
        self.touch()

    def __repr__(self) -> str:
        return f"<ThinkingSession {self.id} {self.status.value} steps={len(self.history)}>"
