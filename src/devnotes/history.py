"""Question history persistence — answered questions saved as JSON."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from devnotes.inference.engine import InferenceResponse

logger = logging.getLogger(__name__)


class HistoryStore:
    """Keep the most recent answered questions in a single JSON file.

    The file holds a list, newest first, of::

        {
            "question": "<user text>",
            "answer": "<response text>",
            "provider": "remote" | "local-model" | "static",
            "is_fallback": true | false,
            "model_name": "<optional>",
            "timestamp": "<ISO-8601>"
        }
    """

    def __init__(self, path: Path, max_entries: int = 100) -> None:
        self._path = path
        self._max_entries = max_entries

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[dict[str, Any]]:
        """Return saved entries, newest first. Corrupt files read as empty."""
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text())
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable history file %s: %s", self._path, exc)
            return []
        if not isinstance(data, list):
            logger.warning("Ignoring malformed history file %s", self._path)
            return []
        return data

    def record(self, question: str, response: InferenceResponse) -> dict[str, Any]:
        entry = {
            "question": question,
            "answer": response.text,
            "provider": response.provider.value,
            "is_fallback": response.is_fallback,
            "model_name": response.model_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        entries = [entry, *self.load()][: self._max_entries]
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(entries, indent=2))
        logger.debug("History saved (%d entries)", len(entries))
        return entry

    def clear(self) -> bool:
        """Delete the history file. Returns ``True`` if it existed."""
        if self._path.exists():
            self._path.unlink()
            logger.info("History cleared: %s", self._path)
            return True
        return False
