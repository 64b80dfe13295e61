"""Persistence of the workflow id -> reference image path mapping.

Two implementations of :class:`facegate.interfaces.ReferenceStorage`:

- :class:`JsonReferenceStorage`: a JSON file, rewritten atomically on every
  change so the mapping survives restarts.
- :class:`InMemoryReferenceStorage`: a plain dict, for tests and embedding.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional

from facegate.logging_config import get_logger

logger = get_logger(__name__)


def _reference_file_exists(image_path: Optional[str]) -> bool:
    return bool(image_path) and Path(image_path).is_file()


class InMemoryReferenceStorage:
    """Reference storage kept in process memory only."""

    def __init__(self) -> None:
        self._paths: Dict[str, str] = {}
        self._lock = threading.Lock()

    def save(self, workflow_id: str, image_path: str) -> None:
        with self._lock:
            self._paths[workflow_id] = str(image_path)

    def get(self, workflow_id: str) -> Optional[str]:
        with self._lock:
            return self._paths.get(workflow_id)

    def remove(self, workflow_id: str) -> None:
        with self._lock:
            self._paths.pop(workflow_id, None)

    def has(self, workflow_id: str) -> bool:
        return _reference_file_exists(self.get(workflow_id))

    def __repr__(self) -> str:
        """String representation."""
        return f"InMemoryReferenceStorage(entries={len(self._paths)})"


class JsonReferenceStorage:
    """Reference storage backed by a JSON file.

    The whole mapping is loaded once at construction and written back after
    every change through a temporary file and ``os.replace``, so a crash
    mid-write never leaves a truncated file behind.

    Attributes:
        path: Location of the JSON file

    Example:
        >>> storage = JsonReferenceStorage("data/references.json")
        >>> storage.save("w1", "/photos/alice.jpg")
        >>> JsonReferenceStorage("data/references.json").get("w1")
        '/photos/alice.jpg'
    """

    def __init__(self, path: str | Path):
        """Initialize storage, loading any existing mapping.

        Args:
            path: JSON file location (created on first write)
        """
        self.path = Path(path)
        self._lock = threading.Lock()
        self._paths: Dict[str, str] = self._load()

        logger.info(
            f"Initialized JsonReferenceStorage: path={self.path}, entries={len(self._paths)}"
        )

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Could not read reference store {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.error(f"Reference store {self.path} is not a JSON object, ignoring it")
            return {}

        return {str(k): str(v) for k, v in data.items() if isinstance(v, str)}

    def _flush(self, paths: Dict[str, str]) -> None:
        """Write ``paths`` to disk. Caller holds ``_lock``."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(paths, f, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def save(self, workflow_id: str, image_path: str) -> None:
        """Record (or overwrite) the reference image path of a workflow."""
        with self._lock:
            paths = dict(self._paths)
            paths[workflow_id] = str(image_path)
            # Memory only changes once the file is written
            self._flush(paths)
            self._paths = paths

        logger.debug(f"Saved reference for workflow '{workflow_id}': {image_path}")

    def get(self, workflow_id: str) -> Optional[str]:
        """Return the recorded path, or None."""
        with self._lock:
            return self._paths.get(workflow_id)

    def remove(self, workflow_id: str) -> None:
        """Forget the reference of a workflow."""
        with self._lock:
            if workflow_id not in self._paths:
                return
            paths = {k: v for k, v in self._paths.items() if k != workflow_id}
            self._flush(paths)
            self._paths = paths

        logger.debug(f"Removed reference for workflow '{workflow_id}'")

    def has(self, workflow_id: str) -> bool:
        """True when a non-empty path is recorded and the file exists."""
        return _reference_file_exists(self.get(workflow_id))

    def __repr__(self) -> str:
        """String representation."""
        return f"JsonReferenceStorage(path={self.path}, entries={len(self._paths)})"
