"""JSONL event logger - append-only record of registry mutations"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class EventLogger:
    """Append-only JSONL event log.

    Every event carries a UTC timestamp, a monotonic `sequence` and its
    `event_type`. A logger constructed without a path keeps events in
    memory only, which is what tests and embedded registries use.
    Sequence numbering and the file append happen under one lock, so a
    logger shared between threads never repeats or reorders a sequence.
    """

    output_path: Path | None
    _sequence: int
    _recent: list[dict[str, Any]]

    def __init__(self, output_file: str | Path | None = None, max_recent: int = 1000) -> None:
        self.output_path = Path(output_file) if output_file else None
        self._sequence = 0
        self._recent = []
        self._max_recent = max_recent
        self._lock = threading.Lock()
        if self.output_path is not None:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self.output_path.touch(exist_ok=True)

    def log(self, event_type: str, data: dict[str, Any]) -> None:
        """Log an event."""
        with self._lock:
            self._sequence += 1
            event: dict[str, Any] = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "sequence": self._sequence,
                "event_type": event_type,
                **data,
            }
            self._recent.append(event)
            if len(self._recent) > self._max_recent:
                del self._recent[: len(self._recent) - self._max_recent]
            if self.output_path is not None:
                with open(self.output_path, "a") as f:
                    f.write(json.dumps(event) + "\n")
        logger.debug("event %s #%d", event_type, event["sequence"])

    def get_recent(self, n: int = 50) -> list[dict[str, Any]]:
        """Most recent events, oldest first."""
        if n <= 0:
            return []
        with self._lock:
            return [dict(e) for e in self._recent[-n:]]

    # ========== Registry event helpers ==========

    def log_mint(
        self,
        token_id: str,
        owner_id: str,
        creator_id: str,
        token_type: str | None,
    ) -> None:
        self.log("nft_mint", {
            "token_id": token_id,
            "owner_id": owner_id,
            "creator_id": creator_id,
            "token_type": token_type,
        })

    def log_transfer(
        self,
        token_id: str,
        old_owner_id: str,
        new_owner_id: str,
        memo: str | None = None,
    ) -> None:
        data: dict[str, Any] = {
            "token_id": token_id,
            "old_owner_id": old_owner_id,
            "new_owner_id": new_owner_id,
        }
        if memo is not None:
            data["memo"] = memo
        self.log("nft_transfer", data)
