"""
Event and record models for the session coordinator.

Pydantic models for payloads crossing the event bus and rows returned
by the session store.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Provider(str, Enum):
    """Supported coding agents."""

    CLAUDE_CODE = "claude-code"
    GITHUB_COPILOT = "github-copilot"
    OPENCODE = "opencode"
    CODEX = "codex"
    CURSOR = "cursor"
    GEMINI_CODE = "gemini-code"


class Locality(str, Enum):
    """Where a processed session was surfaced from."""

    LOCAL = "local"
    SYNCED = "synced"


class SessionRecord(BaseModel):
    """
    A session row as stored by the watcher backend.

    Accepts both the storage column names and the camelCase aliases
    used on the event bus.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    provider: Provider
    file_path: str = Field(alias="filePath")
    session_id: str = Field(alias="sessionId")


class SessionEvent(BaseModel):
    """Payload of `session-completed` and `session-activity` events."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1)

    @classmethod
    def from_payload(cls, payload: Any) -> "SessionEvent":
        """Build from a bare session id string or a mapping."""
        if isinstance(payload, cls):
            return payload
        if isinstance(payload, str):
            return cls(session_id=payload)
        return cls.model_validate(payload)


class RescanPhase(str, Enum):
    """Known rescan phases. Anything else counts as in progress."""

    SCANNING = "scanning"
    PROCESSING = "processing"
    COMPLETE = "complete"


class RescanProgress(BaseModel):
    """Payload of `rescan-progress` events."""

    provider: str
    phase: str
    current: int = 0
    total: int = 0
    message: str = ""

    @property
    def is_complete(self) -> bool:
        return self.phase == RescanPhase.COMPLETE.value
