"""
Unit tests for the activity tracker.

Covers the activity window, the tracking switch, sweeps, config updates
and rescan suspension.
"""

import asyncio

import pytest

from session_coordinator.activity import ActivityTracker
from session_coordinator.config import ActivityConfig
from session_coordinator.events import RESCAN_PROGRESS, SESSION_ACTIVITY, EventBus

DEFAULT_TIMEOUT_MS = 2 * 60 * 1000


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(clock):
    return ActivityTracker(clock=clock)


class TestActivityWindow:
    """Tests for mark_active / is_active."""

    def test_default_timeout(self, tracker):
        """Default window is two minutes."""
        assert tracker.config.active_session_timeout_ms == DEFAULT_TIMEOUT_MS

    def test_marks_session_active(self, tracker):
        """A freshly marked session is active."""
        tracker.mark_active("session-1")

        assert tracker.is_active("session-1") is True

    def test_unknown_session_is_inactive(self, tracker):
        assert tracker.is_active("nope") is False

    def test_session_expires_after_timeout(self, tracker, clock):
        """Session stops being active once the timeout has elapsed."""
        tracker.mark_active("session-1")

        clock.advance_ms(DEFAULT_TIMEOUT_MS - 1_000)
        assert tracker.is_active("session-1") is True

        clock.advance_ms(1_000)
        assert tracker.is_active("session-1") is False

    def test_is_active_does_not_remove_stale_entries(self, tracker, clock):
        """Stale entries remain until a sweep."""
        tracker.mark_active("session-1")
        clock.advance_ms(DEFAULT_TIMEOUT_MS * 2)

        assert tracker.is_active("session-1") is False
        assert "session-1" in tracker.active_sessions

    def test_mark_active_refreshes_timestamp(self, tracker, clock):
        tracker.mark_active("session-1")
        clock.advance_ms(DEFAULT_TIMEOUT_MS - 10)
        tracker.mark_active("session-1")
        clock.advance_ms(100)

        assert tracker.is_active("session-1") is True
        assert len(tracker) == 1

    def test_active_session_ids_excludes_stale(self, tracker, clock):
        tracker.mark_active("old")
        clock.advance_ms(DEFAULT_TIMEOUT_MS)
        tracker.mark_active("new")

        assert tracker.active_session_ids() == ["new"]

    def test_active_sessions_is_a_snapshot(self, tracker):
        """Mutating the returned mapping does not touch tracker state."""
        tracker.mark_active("session-1")

        snapshot = tracker.active_sessions
        snapshot.clear()

        assert tracker.is_active("session-1") is True


class TestTrackingSwitch:
    """Tests for set_tracking_enabled."""

    def test_ignores_activity_when_disabled(self, tracker):
        """Activity is dropped while tracking is disabled."""
        tracker.set_tracking_enabled(False)
        tracker.mark_active("session-1")

        assert tracker.is_active("session-1") is False
        assert len(tracker.active_sessions) == 0

    def test_disabling_keeps_existing_entries(self, tracker, clock):
        """Existing entries stay queryable and keep decaying."""
        tracker.mark_active("session-1")
        tracker.set_tracking_enabled(False)

        assert tracker.is_active("session-1") is True

        clock.advance_ms(DEFAULT_TIMEOUT_MS)
        assert tracker.cleanup_inactive_sessions() == 1
        assert len(tracker) == 0

    def test_reenabling_resumes_ingestion(self, tracker):
        tracker.set_tracking_enabled(False)
        tracker.set_tracking_enabled(True)
        tracker.mark_active("session-1")

        assert tracker.is_active("session-1") is True


class TestCleanup:
    """Tests for cleanup_inactive_sessions and clear_all_active_sessions."""

    def test_removes_inactive_sessions_after_timeout(self, tracker, clock):
        """Sweep removes entries whose age reached the timeout."""
        tracker.update_config({"active_session_timeout_ms": 1_000})

        tracker.mark_active("session-1")
        assert tracker.is_active("session-1") is True

        clock.advance_ms(1_000)

        assert tracker.cleanup_inactive_sessions() == 1
        assert tracker.is_active("session-1") is False
        assert "session-1" not in tracker.active_sessions

    def test_cleanup_keeps_fresh_sessions(self, tracker, clock):
        tracker.mark_active("old")
        clock.advance_ms(DEFAULT_TIMEOUT_MS)
        tracker.mark_active("fresh")

        tracker.cleanup_inactive_sessions()

        assert list(tracker.active_sessions) == ["fresh"]

    def test_cleanup_noop_does_not_notify(self, tracker):
        """Nothing stale means no version bump and no listener call."""
        tracker.mark_active("session-1")
        version = tracker.version
        calls = []
        tracker.add_listener(calls.append)

        assert tracker.cleanup_inactive_sessions() == 0
        assert tracker.cleanup_inactive_sessions() == 0

        assert tracker.version == version
        assert calls == []

    def test_clear_all(self, tracker):
        tracker.mark_active("a")
        tracker.mark_active("b")

        tracker.clear_all_active_sessions()

        assert len(tracker) == 0
        assert tracker.is_active("a") is False


class TestUpdateConfig:
    """Tests for update_config."""

    def test_timeout_read_at_query_time(self, tracker, clock):
        """Shrinking the timeout applies to entries recorded earlier."""
        tracker.mark_active("session-1")
        clock.advance_ms(5_000)
        assert tracker.is_active("session-1") is True

        tracker.update_config(active_session_timeout_ms=1_000)

        assert tracker.is_active("session-1") is False

    def test_partial_update_keeps_other_fields(self, tracker):
        interval = tracker.config.cleanup_interval_ms

        config = tracker.update_config({"active_session_timeout_ms": 5_000})

        assert config.active_session_timeout_ms == 5_000
        assert config.cleanup_interval_ms == interval

    def test_rejects_unknown_keys(self, tracker):
        with pytest.raises(ValueError, match="Unknown"):
            tracker.update_config({"activeSessionTimeout": 1_000})

    @pytest.mark.parametrize("value", [0, -1, "fast", float("nan"), float("inf")])
    def test_rejects_invalid_timeout(self, tracker, value):
        with pytest.raises(ValueError):
            tracker.update_config(active_session_timeout_ms=value)

        assert tracker.config.active_session_timeout_ms == DEFAULT_TIMEOUT_MS


class TestChangeNotification:
    """Tests for version counter and listeners."""

    def test_mark_active_bumps_version(self, tracker):
        before = tracker.version
        tracker.mark_active("session-1")
        assert tracker.version == before + 1

    def test_disabled_mark_active_changes_nothing(self, tracker):
        tracker.set_tracking_enabled(False)
        before = tracker.version

        tracker.mark_active("session-1")

        assert tracker.version == before

    def test_listener_called_and_removed(self, tracker):
        calls = []
        remove = tracker.add_listener(calls.append)

        tracker.mark_active("session-1")
        remove()
        tracker.mark_active("session-2")

        assert calls == [tracker]

    def test_failing_listener_does_not_break_tracker(self, tracker):
        def boom(_):
            raise RuntimeError("listener failed")

        tracker.add_listener(boom)
        tracker.mark_active("session-1")

        assert tracker.is_active("session-1") is True


class TestRescanSuspension:
    """Tests for handle_rescan_progress."""

    def progress(self, provider, phase):
        return {"provider": provider, "phase": phase, "current": 0, "total": 10, "message": ""}

    def test_rescan_clears_and_disables(self, tracker):
        tracker.mark_active("session-1")

        tracker.handle_rescan_progress(self.progress("claude-code", "scanning"))

        assert len(tracker) == 0
        assert tracker.tracking_enabled is False

        tracker.mark_active("session-2")
        assert tracker.is_active("session-2") is False

    def test_rescan_complete_reenables(self, tracker):
        tracker.handle_rescan_progress(self.progress("claude-code", "scanning"))
        tracker.handle_rescan_progress(self.progress("claude-code", "processing"))
        tracker.handle_rescan_progress(self.progress("claude-code", "complete"))

        assert tracker.tracking_enabled is True
        assert tracker.rescanning_providers == frozenset()

    def test_waits_for_every_provider(self, tracker):
        """Tracking resumes only when the last rescan completes."""
        tracker.handle_rescan_progress(self.progress("claude-code", "scanning"))
        tracker.handle_rescan_progress(self.progress("codex", "scanning"))

        tracker.handle_rescan_progress(self.progress("claude-code", "complete"))
        assert tracker.tracking_enabled is False

        tracker.handle_rescan_progress(self.progress("codex", "complete"))
        assert tracker.tracking_enabled is True

    def test_progress_updates_do_not_clear_again(self, tracker):
        """Only the start of a rescan clears the map."""
        tracker.handle_rescan_progress(self.progress("claude-code", "scanning"))
        tracker.set_tracking_enabled(True)
        tracker.mark_active("session-1")

        tracker.handle_rescan_progress(self.progress("claude-code", "processing"))

        assert "session-1" in tracker.active_sessions

    def test_stray_complete_is_ignored(self, tracker):
        tracker.set_tracking_enabled(False)

        tracker.handle_rescan_progress(self.progress("cursor", "complete"))

        assert tracker.tracking_enabled is False

    def test_malformed_payload_is_ignored(self, tracker):
        tracker.mark_active("session-1")

        tracker.handle_rescan_progress({"phase": "scanning"})

        assert tracker.tracking_enabled is True
        assert tracker.is_active("session-1") is True


class TestLifecycle:
    """Tests for start/stop with an event bus."""

    @pytest.mark.asyncio
    async def test_start_subscribes_and_stop_unsubscribes(self, clock):
        bus = EventBus()
        tracker = ActivityTracker(bus=bus, clock=clock)

        await tracker.start()
        assert bus.subscriber_count(SESSION_ACTIVITY) == 1
        assert bus.subscriber_count(RESCAN_PROGRESS) == 1

        bus.emit(SESSION_ACTIVITY, {"sessionId": "session-1"})
        bus.emit(SESSION_ACTIVITY, "session-2")
        assert tracker.is_active("session-1") is True
        assert tracker.is_active("session-2") is True

        await tracker.stop()
        await tracker.stop()
        assert tracker.running is False
        assert bus.subscriber_count(SESSION_ACTIVITY) == 0

        bus.emit(SESSION_ACTIVITY, "session-3")
        assert tracker.is_active("session-3") is False

    @pytest.mark.asyncio
    async def test_periodic_sweep_removes_stale_sessions(self, clock):
        tracker = ActivityTracker(
            config=ActivityConfig(active_session_timeout_ms=1_000, cleanup_interval_ms=10),
            clock=clock,
        )
        tracker.mark_active("session-1")
        clock.advance_ms(1_000)

        await tracker.start()
        try:
            for _ in range(100):
                if len(tracker) == 0:
                    break
                await asyncio.sleep(0.01)
        finally:
            await tracker.stop()

        assert len(tracker) == 0

    @pytest.mark.asyncio
    async def test_start_twice_keeps_single_subscription(self, clock):
        bus = EventBus()
        tracker = ActivityTracker(bus=bus, clock=clock)

        await tracker.start()
        await tracker.start()
        try:
            assert bus.subscriber_count(SESSION_ACTIVITY) == 1
        finally:
            await tracker.stop()
