"""Exceptions raised by session coordinator adapters."""

from __future__ import annotations


class CoordinatorError(Exception):
    """Base class for coordination failures."""

    session_id: str | None = None

    def __init__(self, message: str, session_id: str | None = None):
        super().__init__(message)
        self.session_id = session_id


class SessionNotFoundError(CoordinatorError):
    """Session id is absent from storage."""
    pass


class ContentReadError(CoordinatorError):
    """Transcript content could not be read."""
    pass


class ProcessorError(CoordinatorError):
    """Downstream processing of a session failed."""
    pass
