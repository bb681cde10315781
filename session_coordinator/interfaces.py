"""Collaborator interfaces the coordination core depends on."""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Locality, Provider, SessionRecord


class SessionLookup(Protocol):
    """Resolves a session id to its stored record."""

    async def get_session(self, session_id: str) -> "SessionRecord | None":
        """Returns: the record, or None when the id is unknown."""
        ...


class ContentReader(Protocol):
    """Reads the raw transcript of a session."""

    async def read_content(self, record: "SessionRecord") -> str:
        """Keyed by (provider, file_path, session_id)."""
        ...


class SessionProcessor(Protocol):
    """
    Downstream processing step fed by the completion dispatcher.

    Responsible for its own atomicity. The return value is ignored.
    """

    async def process_session(
        self,
        session_id: str,
        provider: "Provider",
        content: str,
        locality: "Locality",
    ) -> None:
        ...
