"""JSONL log of processed sessions.

One file, append-only, one JSON object per processed session.
"""

from __future__ import annotations

import asyncio
import json
import time
from pathlib import Path

from .errors import ProcessorError
from .models import Locality, Provider


class JsonlProcessingLog:
    """
    Processor that records each session it receives.

    Useful as the terminal step when no metrics pipeline is attached.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    async def process_session(
        self,
        session_id: str,
        provider: Provider,
        content: str,
        locality: Locality,
    ) -> None:
        entry = {
            "session_id": session_id,
            "provider": Provider(provider).value,
            "locality": Locality(locality).value,
            "content_length": len(content),
            "processed_at": time.time(),
        }
        await asyncio.to_thread(self._append, entry)

    def _append(self, entry: dict) -> None:
        try:
            with open(self.path, "a") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as e:
            raise ProcessorError(
                f"Cannot write processing log {self.path}: {e}",
                session_id=entry["session_id"],
            ) from e

    def entries(self) -> list[dict]:
        """All logged entries, oldest first."""
        if not self.path.exists():
            return []

        with open(self.path) as f:
            return [json.loads(line) for line in f if line.strip()]
