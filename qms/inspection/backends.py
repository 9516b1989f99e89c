"""
Key-value blob backends for the inspection store.

The store only needs two capabilities from persistence:

    read_all()  -> list of blobs     (raises PersistenceError on failure)
    write_all(blobs) -> bool         (False when the write did not happen)

No partial writes, queries or transactions are assumed. If several
writers ever share one backend, the backend is responsible for making
write_all atomic or rejecting it.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from qms.exceptions import PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "qms_inspections_v2"


class InspectionBackend(ABC):
    """Read-all / write-all contract consumed by RecordStore."""

    @abstractmethod
    def read_all(self) -> list[dict[str, Any]]:
        """Return every stored blob. Raises PersistenceError on failure."""

    @abstractmethod
    def write_all(self, blobs: list[dict[str, Any]]) -> bool:
        """Replace the stored set. Returns False if nothing was written."""


class InMemoryBackend(InspectionBackend):
    """
    Process-local backend, mainly for tests and embedding.

    Blobs are deep-copied in both directions so callers can never
    mutate stored state by accident.
    """

    def __init__(self, blobs: Optional[list[dict[str, Any]]] = None):
        self._blobs: list[dict[str, Any]] = copy.deepcopy(blobs or [])
        self.write_count = 0

    def read_all(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._blobs)

    def write_all(self, blobs: list[dict[str, Any]]) -> bool:
        self._blobs = copy.deepcopy(list(blobs))
        self.write_count += 1
        return True


class JSONFileBackend(InspectionBackend):
    """
    Stores the record set in a JSON file under a single key.

    File layout mirrors the browser local-storage entry it replaces:

        {"qms_inspections_v2": [ {...}, {...} ]}

    Other keys in the file are preserved on write. Writes go to a temp
    file in the same directory and are moved into place with
    os.replace, so a crash never leaves a half-written file behind.
    """

    def __init__(self, path: str | Path, key: str = DEFAULT_STORAGE_KEY):
        self.path = Path(path)
        self.key = key

    def _read_document(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = f.read()
            document = json.loads(raw) if raw.strip() else {}
        except (OSError, ValueError) as e:
            raise PersistenceError(
                f"Could not read inspection data from {self.path}: {e}",
                operation="read",
                details={"path": str(self.path)},
            ) from e

        if not isinstance(document, dict):
            raise PersistenceError(
                f"Inspection data file {self.path} is not a JSON object",
                operation="read",
                details={"path": str(self.path)},
            )
        return document

    def read_all(self) -> list[dict[str, Any]]:
        blobs = self._read_document().get(self.key, [])
        if not isinstance(blobs, list):
            raise PersistenceError(
                f"Key '{self.key}' in {self.path} does not hold a list",
                operation="read",
                details={"path": str(self.path), "key": self.key},
            )
        return blobs

    def write_all(self, blobs: list[dict[str, Any]]) -> bool:
        try:
            document = self._read_document()
        except PersistenceError as e:
            logger.error(f"Refusing to overwrite unreadable data file: {e}")
            return False
        document[self.key] = list(blobs)

        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_name, self.path)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error(
                f"Failed to write inspection data to {self.path}: {e}",
                extra={"count": len(blobs)},
            )
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            return False
