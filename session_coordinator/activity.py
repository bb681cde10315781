"""
Activity tracker: which sessions are currently active.

A session is active while less than the configured timeout has elapsed
since its last activity event. Stale entries stay queryable (and report
inactive) until a sweep removes them. Ingestion can be switched off
globally, which the tracker does itself while a provider rescan runs.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, fields, replace
from typing import Any, TYPE_CHECKING

from pydantic import ValidationError

from .config import ActivityConfig
from .events import RESCAN_PROGRESS, SESSION_ACTIVITY, Unsubscribe
from .models import RescanProgress, SessionEvent

if TYPE_CHECKING:
    from .events import EventBus

logger = logging.getLogger(__name__)

Listener = Callable[["ActivityTracker"], None]


@dataclass(frozen=True)
class ActiveSession:
    """Last activity seen for one session."""

    session_id: str
    last_activity_time: float  # clock() seconds


class ActivityTracker:
    """
    Owns the session id -> last activity map.

    The map only changes through mark_active, cleanup_inactive_sessions
    and clear_all_active_sessions. Every state change bumps `version` and
    notifies listeners.
    """

    def __init__(
        self,
        config: ActivityConfig | None = None,
        bus: "EventBus | None" = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize tracker.

        Args:
            config: Activity window settings (default: ActivityConfig())
            bus: Event bus to subscribe to on start()
            clock: Monotonic clock returning seconds
        """
        self._config = config or ActivityConfig()
        self._bus = bus
        self._clock = clock
        self._sessions: dict[str, ActiveSession] = {}
        self._tracking_enabled = True
        self._rescanning: set[str] = set()
        self._listeners: list[Listener] = []
        self._unsubscribers: list[Unsubscribe] = []
        self._sweep_task: asyncio.Task | None = None
        self.version = 0

    @property
    def config(self) -> ActivityConfig:
        return self._config

    @property
    def tracking_enabled(self) -> bool:
        return self._tracking_enabled

    @property
    def active_sessions(self) -> dict[str, ActiveSession]:
        """Snapshot of every tracked entry, stale ones included."""
        return dict(self._sessions)

    @property
    def rescanning_providers(self) -> frozenset[str]:
        return frozenset(self._rescanning)

    def __len__(self) -> int:
        return len(self._sessions)

    # ------------------------------------------------------------------
    # State operations
    # ------------------------------------------------------------------

    def mark_active(self, session_id: str) -> None:
        """Record activity for a session. Ignored while tracking is disabled."""
        if not self._tracking_enabled:
            return

        self._sessions[session_id] = ActiveSession(session_id, self._clock())
        self._changed()

    def is_active(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        return self._age_ms(session) < self._config.active_session_timeout_ms

    def active_session_ids(self) -> list[str]:
        """Ids of sessions still inside the activity window."""
        return [sid for sid in self._sessions if self.is_active(sid)]

    def cleanup_inactive_sessions(self) -> int:
        """
        Remove every entry whose age has reached the timeout.

        Returns:
            Number of entries removed
        """
        timeout_ms = self._config.active_session_timeout_ms
        stale = [
            sid for sid, session in self._sessions.items()
            if self._age_ms(session) >= timeout_ms
        ]
        if not stale:
            return 0

        for sid in stale:
            del self._sessions[sid]
        logger.debug(f"Removed {len(stale)} inactive session(s)")
        self._changed()
        return len(stale)

    def clear_all_active_sessions(self) -> None:
        self._sessions = {}
        self._changed()

    def set_tracking_enabled(self, enabled: bool) -> None:
        """Toggle ingestion. Existing entries are kept and keep decaying."""
        self._tracking_enabled = enabled
        logger.info(f"Session activity tracking {'enabled' if enabled else 'disabled'}")
        self._changed()

    def update_config(self, partial: dict[str, Any] | None = None, **changes: Any) -> ActivityConfig:
        """
        Merge changes into the activity config.

        Takes effect on the next query or sweep.

        Raises:
            ValueError: On unknown keys or non-positive or non-finite values
        """
        merged = dict(partial or {})
        merged.update(changes)

        valid = {f.name for f in fields(ActivityConfig)}
        unknown = set(merged) - valid
        if unknown:
            raise ValueError(f"Unknown activity config keys: {sorted(unknown)}")

        # ActivityConfig validates values in __post_init__
        self._config = replace(self._config, **merged)
        self._changed()
        return self._config

    def add_listener(self, listener: Listener) -> Unsubscribe:
        """Register a change callback. Returns a callable that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _age_ms(self, session: ActiveSession) -> float:
        return (self._clock() - session.last_activity_time) * 1000

    def _changed(self) -> None:
        self.version += 1
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Activity listener failed")

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def handle_activity(self, payload: Any) -> None:
        try:
            event = SessionEvent.from_payload(payload)
        except ValidationError as e:
            logger.error(f"Ignoring malformed {SESSION_ACTIVITY} payload {payload!r}: {e}")
            return
        self.mark_active(event.session_id)

    def handle_rescan_progress(self, payload: Any) -> None:
        """
        Suspend tracking while any provider is rescanning.

        The first provider to start clears all sessions and disables
        tracking; the last one to complete re-enables it.
        """
        try:
            progress = payload if isinstance(payload, RescanProgress) else RescanProgress.model_validate(payload)
        except ValidationError as e:
            logger.error(f"Ignoring malformed {RESCAN_PROGRESS} payload {payload!r}: {e}")
            return

        if progress.is_complete:
            if progress.provider not in self._rescanning:
                return
            self._rescanning.discard(progress.provider)
            logger.info(f"Rescan of {progress.provider} complete")
            if not self._rescanning:
                self.set_tracking_enabled(True)
            return

        if progress.provider in self._rescanning:
            return

        first = not self._rescanning
        self._rescanning.add(progress.provider)
        logger.info(f"Rescan of {progress.provider} started ({progress.phase})")
        if first:
            self.clear_all_active_sessions()
            self.set_tracking_enabled(False)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._sweep_task is not None

    async def start(self) -> None:
        """Subscribe to activity events and start the periodic sweep."""
        if self._sweep_task is not None:
            logger.warning("Activity tracker already running")
            return

        if self._bus is not None:
            self._unsubscribers = [
                self._bus.subscribe(SESSION_ACTIVITY, self.handle_activity),
                self._bus.subscribe(RESCAN_PROGRESS, self.handle_rescan_progress),
            ]
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info("Activity tracker started")

    async def stop(self) -> None:
        """Unsubscribe and cancel the sweep. Safe to call repeatedly."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Activity tracker stopped")

    async def _sweep_loop(self) -> None:
        while True:
            # Interval read each cycle so update_config applies immediately
            await asyncio.sleep(self._config.cleanup_interval_ms / 1000)
            try:
                self.cleanup_inactive_sessions()
            except Exception:
                logger.exception("Activity sweep failed")
