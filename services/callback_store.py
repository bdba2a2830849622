from __future__ import annotations

import json
import logging
import os
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECORDS = 500


def _new_record_id() -> str:
    return f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:12]}"


def _utc_timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def empty_document() -> Dict[str, List[Dict[str, Any]]]:
    return {"callbacks": []}


@dataclass
class CallbackRecord:
    """One inbound callback as persisted in the store document."""

    payload: Any = field(default_factory=dict)
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    id: str = field(default_factory=_new_record_id)
    received_at: str = field(default_factory=_utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "receivedAt": self.received_at,
            "ip": self.ip,
            "userAgent": self.user_agent,
            "payload": self.payload,
        }


class CallbackStore:
    """Flat JSON file holding the newest ``max_records`` callbacks, newest first.

    Every mutation reads and rewrites the whole document. ``append`` holds a
    process-wide lock across the read-modify-write so that concurrent
    requests in one process cannot drop each other's inserts; writers in
    other processes are not coordinated.
    """

    def __init__(self, path: str, *, max_records: int = DEFAULT_MAX_RECORDS) -> None:
        if max_records <= 0:
            raise ValueError("max_records must be positive")
        self._path = os.path.abspath(path)
        self._max_records = int(max_records)
        self._lock = threading.Lock()

    @property
    def path(self) -> str:
        return self._path

    @property
    def max_records(self) -> int:
        return self._max_records

    # ------------------------------------------------------------------
    # Document I/O
    # ------------------------------------------------------------------
    def initialize(self) -> None:
        """Create an empty document if the backing file does not exist yet."""

        if os.path.exists(self._path):
            return
        directory = os.path.dirname(self._path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self.write(empty_document())
        logger.info("Created callback store at %s", self._path)

    def read(self) -> Dict[str, List[Dict[str, Any]]]:
        """Load the document, degrading to an empty one on any failure."""

        try:
            with open(self._path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, ValueError):
            logger.warning("Callback store unreadable, serving empty document: %s", self._path)
            return empty_document()

        if not isinstance(document, dict) or not isinstance(document.get("callbacks"), list):
            logger.warning("Callback store has unexpected shape, serving empty document: %s", self._path)
            return empty_document()
        return document

    def write(self, document: Dict[str, Any]) -> None:
        text = json.dumps(document, indent=2, ensure_ascii=False)
        try:
            text.encode("utf-8")
        except UnicodeEncodeError:
            # Lone surrogates from \uXXXX escapes only survive as ASCII escapes.
            text = json.dumps(document, indent=2, ensure_ascii=True)
        # Plain overwrite; a crash mid-write can leave a truncated file.
        with open(self._path, "w", encoding="utf-8") as f:
            f.write(text)

    # ------------------------------------------------------------------
    # Record operations
    # ------------------------------------------------------------------
    def append(self, record: CallbackRecord | Dict[str, Any]) -> Dict[str, Any]:
        entry = record.to_dict() if isinstance(record, CallbackRecord) else dict(record)
        with self._lock:
            document = self.read()
            callbacks = [entry] + document["callbacks"]
            dropped = len(callbacks) - self._max_records
            document["callbacks"] = callbacks[: self._max_records]
            self.write(document)
        if dropped > 0:
            logger.debug("Evicted %d oldest callback(s) from %s", dropped, self._path)
        return entry

    def all(self) -> List[Dict[str, Any]]:
        return self.read()["callbacks"]

    def latest(self, limit: int) -> List[Dict[str, Any]]:
        return self.all()[: max(0, int(limit))]

    def find(self, record_id: str) -> Optional[Dict[str, Any]]:
        for entry in self.all():
            if isinstance(entry, dict) and entry.get("id") == record_id:
                return entry
        return None


__all__ = [
    "CallbackRecord",
    "CallbackStore",
    "DEFAULT_MAX_RECORDS",
    "empty_document",
]
