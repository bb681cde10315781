"""Tests for event and record models."""

import pytest
from pydantic import ValidationError

from session_coordinator.models import (
    Provider,
    RescanProgress,
    SessionEvent,
    SessionRecord,
)


class TestSessionRecord:
    def test_accepts_column_names(self):
        record = SessionRecord.model_validate(
            {"provider": "claude-code", "file_path": "/tmp/a.jsonl", "session_id": "a"}
        )
        assert record.provider is Provider.CLAUDE_CODE

    def test_accepts_camel_case_aliases(self):
        record = SessionRecord.model_validate(
            {"provider": "github-copilot", "filePath": "/tmp/a.json", "sessionId": "a"}
        )
        assert record.file_path == "/tmp/a.json"
        assert record.session_id == "a"

    def test_is_immutable(self):
        record = SessionRecord(provider="codex", file_path="/x", session_id="a")
        with pytest.raises(ValidationError):
            record.session_id = "b"

    def test_rejects_unknown_provider(self):
        with pytest.raises(ValidationError):
            SessionRecord(provider="notepad", file_path="/x", session_id="a")


class TestSessionEvent:
    @pytest.mark.parametrize(
        "payload",
        ["abc", {"sessionId": "abc"}, {"session_id": "abc"}],
    )
    def test_from_payload(self, payload):
        assert SessionEvent.from_payload(payload).session_id == "abc"

    @pytest.mark.parametrize("payload", ["", {}, None, 42])
    def test_from_payload_rejects_invalid(self, payload):
        with pytest.raises(ValidationError):
            SessionEvent.from_payload(payload)


class TestRescanProgress:
    def test_is_complete(self):
        progress = RescanProgress(provider="codex", phase="complete", current=5, total=5)
        assert progress.is_complete

    def test_unknown_phase_is_in_progress(self):
        progress = RescanProgress(provider="codex", phase="uploading")
        assert not progress.is_complete
