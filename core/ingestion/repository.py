"""
Ingestion Run Repository - Append-only Store of Ingestion Runs

Runs are held in memory with optional persistence to a single JSON
document ({"runs": [...]}). Saving a run whose run_id already exists
overwrites it in place; runs are never deleted.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional

from core.ingestion.schema import IngestionRun


logger = logging.getLogger(__name__)


class IngestionRunRepository:
    """
    Repository for storing and retrieving ingestion runs.

    Contract:
    - durable write of a run keyed by run_id
    - idempotent overwrite on repeated save with the same id
    - read-all for listing, most recent first
    """

    def __init__(self, persist_path: Optional[str] = None):
        """
        Initialise repository.

        Args:
            persist_path: Optional path to persist data to a JSON file
        """
        self._runs: dict[str, IngestionRun] = {}
        self._persist_path = Path(persist_path) if persist_path else None
        self._lock = threading.Lock()

        if self._persist_path and self._persist_path.exists():
            self._load_from_file()

    @property
    def persist_path(self) -> Optional[Path]:
        return self._persist_path

    def _save_to_file(self) -> None:
        """Persist all runs to file."""
        if not self._persist_path:
            return

        doc = {"runs": [run.to_dict() for run in self._runs.values()]}
        self._persist_path.parent.mkdir(parents=True, exist_ok=True)
        self._persist_path.write_text(
            json.dumps(doc, indent=2, ensure_ascii=False), encoding="utf-8"
        )

    def _load_from_file(self) -> None:
        """Load runs from file. A corrupt document starts an empty store."""
        if not self._persist_path or not self._persist_path.exists():
            return

        try:
            doc = json.loads(self._persist_path.read_text(encoding="utf-8"))
            runs = doc.get("runs", []) if isinstance(doc, dict) else []
            for run_data in runs:
                run = IngestionRun.from_dict(run_data)
                self._runs[run.run_id] = run
        except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            logger.warning("Could not load ingestion runs from %s: %s", self._persist_path, e)
            self._runs = {}

    # =========================================================================
    # Operations
    # =========================================================================

    def save(self, run: IngestionRun) -> IngestionRun:
        """
        Save a run. Re-saving the same run_id replaces the stored run.

        Args:
            run: The ingestion run

        Returns:
            The saved run
        """
        with self._lock:
            runs = dict(self._runs)
            runs[run.run_id] = run
            self._runs = runs
            self._save_to_file()
        return run

    def get(self, run_id: str) -> Optional[IngestionRun]:
        """
        Get a run by id.

        Returns:
            IngestionRun if found, None otherwise
        """
        return self._runs.get(run_id)

    def list(self, limit: int = 100) -> list[IngestionRun]:
        """List runs, most recent first. Equal timestamps fall back to save order."""
        ordered = sorted(
            enumerate(self._runs.values()),
            key=lambda pair: (pair[1].created_at, pair[0]),
            reverse=True,
        )
        return [run for _, run in ordered[: max(0, limit)]]

    def __len__(self) -> int:
        return len(self._runs)

    def check_health(self) -> dict[str, Any]:
        """
        Probe that the persistence location is writable.

        Returns:
            Health dict with status "ok" or "error"
        """
        if not self._persist_path:
            return {"status": "ok", "engine": "memory", "path": None, "writable": True}

        probe = self._persist_path.parent / ".healthcheck"
        try:
            self._persist_path.parent.mkdir(parents=True, exist_ok=True)
            probe.write_text("ok", encoding="utf-8")
            probe.unlink()
        except OSError as e:
            return {
                "status": "error",
                "engine": "file-json",
                "path": str(self._persist_path),
                "writable": False,
                "error": str(e),
            }
        return {
            "status": "ok",
            "engine": "file-json",
            "path": str(self._persist_path),
            "writable": True,
        }

