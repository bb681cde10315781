"""
Completion dispatcher: single-flight processing of finished sessions.

Each `session-completed` event resolves the session record, reads its
transcript and hands it to the processor. At most one pass per session id
runs at a time; an event for an id already in flight is dropped rather
than queued, since the watcher re-emits on every genuine completion.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, TYPE_CHECKING

from pydantic import ValidationError

from .errors import SessionNotFoundError
from .events import SESSION_COMPLETED, Unsubscribe
from .models import Locality, SessionEvent

if TYPE_CHECKING:
    from .events import EventBus
    from .interfaces import ContentReader, SessionLookup, SessionProcessor

logger = logging.getLogger(__name__)


@dataclass
class DispatcherStats:
    """Counters for completion events seen by the dispatcher."""

    accepted: int = 0
    processed: int = 0
    duplicates_dropped: int = 0
    not_found: int = 0
    lookup_failures: int = 0
    read_failures: int = 0
    processor_failures: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class CompletionDispatcher:
    """
    Reacts to session completions and drives the processor.

    Failures in lookup, read or processing are logged and end that event
    only; the dispatcher stays subscribed. stop() ends the subscription
    but lets passes already in flight run to completion. Those passes
    still release their slot, but `stats` is frozen at the moment of
    stop() and only resumes counting after the next start().
    """

    def __init__(
        self,
        bus: "EventBus",
        lookup: "SessionLookup",
        reader: "ContentReader",
        processor: "SessionProcessor",
    ):
        self._bus = bus
        self._lookup = lookup
        self._reader = reader
        self._processor = processor
        self._in_flight: set[str] = set()
        self._unsubscribe: Unsubscribe | None = None
        self._stopped = False
        self.stats = DispatcherStats()

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    @property
    def in_flight(self) -> frozenset[str]:
        """Snapshot of session ids currently being processed."""
        return frozenset(self._in_flight)

    def is_processing(self, session_id: str) -> bool:
        return session_id in self._in_flight

    async def start(self) -> None:
        """Subscribe to completion events."""
        if self._unsubscribe is not None:
            logger.warning("Completion dispatcher already running")
            return

        self._stopped = False
        self._unsubscribe = self._bus.subscribe(SESSION_COMPLETED, self._on_event)
        logger.info("Completion dispatcher started")

    async def stop(self) -> None:
        """Stop accepting completion events. Safe to call repeatedly."""
        if self._unsubscribe is None:
            return

        self._unsubscribe()
        self._unsubscribe = None
        self._stopped = True
        if self._in_flight:
            logger.info(
                f"Completion dispatcher stopped with {len(self._in_flight)} session(s) still processing"
            )
        else:
            logger.info("Completion dispatcher stopped")

    def _count(self, counter: str) -> None:
        if not self._stopped:
            setattr(self.stats, counter, getattr(self.stats, counter) + 1)

    def _on_event(self, payload: Any):
        try:
            event = SessionEvent.from_payload(payload)
        except ValidationError as e:
            logger.error(f"Ignoring malformed {SESSION_COMPLETED} payload {payload!r}: {e}")
            return None
        return self.handle_completion(event.session_id)

    async def handle_completion(self, session_id: str) -> None:
        """
        Process one completion of a session.

        The membership check and insert below run without an await in
        between, so two events for the same id cannot both pass it.
        """
        if session_id in self._in_flight:
            self._count("duplicates_dropped")
            logger.debug(f"Session {session_id} already processing, dropping duplicate event")
            return

        self._in_flight.add(session_id)
        self._count("accepted")
        try:
            await self._process(session_id)
        finally:
            self._in_flight.discard(session_id)

    async def _process(self, session_id: str) -> None:
        try:
            record = await self._lookup.get_session(session_id)
        except SessionNotFoundError:
            record = None
        except Exception:
            self._count("lookup_failures")
            logger.exception(f"Failed to look up session {session_id}")
            return

        if record is None:
            self._count("not_found")
            logger.error(f"Session {session_id} not found in database")
            return

        try:
            content = await self._reader.read_content(record)
        except Exception:
            self._count("read_failures")
            logger.exception(
                f"Failed to read content for session {session_id} ({record.provider.value}: {record.file_path})"
            )
            return

        try:
            await self._processor.process_session(
                session_id, record.provider, content, Locality.LOCAL
            )
        except Exception:
            self._count("processor_failures")
            logger.exception(f"Failed to process session {session_id}")
            return

        self._count("processed")
        logger.debug(f"Processed session {session_id} ({record.provider.value})")
