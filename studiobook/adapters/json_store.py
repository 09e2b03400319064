"""
JSON-file backed document store for the command line tool.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from .memory_store import InMemoryDocumentStore

logger = logging.getLogger(__name__)


class JsonFileDocumentStore(InMemoryDocumentStore):
    """
    In-memory store that loads from and persists to a single JSON file.

    The whole database is rewritten after every committed write; it is meant
    for a single studio's worth of data, not for concurrent processes.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        super().__init__(initial=self._load())

    def _load(self) -> dict:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid store file {self.path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError(f"Store file {self.path} must contain a mapping of collections.")

        return data

    def _after_write(self) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self._collections, f, indent=2, sort_keys=True)
        tmp_path.replace(self.path)
        logger.debug("Persisted store to %s", self.path)
