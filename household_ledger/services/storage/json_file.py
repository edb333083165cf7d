"""
JSON File Storage

The default backend: the whole ledger lives in one JSON document whose
layout is exactly the export format (nine camelCase collections plus a
timestamp), so a saved ledger file is also a valid backup file.

Writes go to a sibling temp file that is then renamed over the target,
so a crash mid-write never leaves a truncated ledger behind.
"""

import json
import os
from pathlib import Path
from typing import Any, Optional, Union

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from household_ledger.config import get_settings
from household_ledger.models.snapshot import Snapshot
from household_ledger.services.storage.interface import (
    SnapshotStorageInterface,
    StorageError,
)


class JsonFileSnapshotStorage(SnapshotStorageInterface):
    """Snapshot storage in a single JSON file."""

    backend_name = "json"

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self._path = Path(path) if path else get_settings().storage.snapshot_file

    @property
    def path(self) -> Path:
        return self._path

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, max=1),
        retry=retry_if_exception_type(OSError),
        reraise=True,
    )
    def _read_text(self) -> str:
        return self._path.read_text(encoding="utf-8")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, max=1),
        retry=retry_if_exception_type(OSError),
        reraise=True,
    )
    def _write_text(self, text: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        tmp_path.write_text(text, encoding="utf-8")
        os.replace(tmp_path, self._path)

    def load(self) -> Optional[dict[str, Any]]:
        """
        Read the ledger file; None when it does not exist yet.

        The parsed document is returned as is. Its layout is checked by
        the store, exactly like an imported backup.
        """
        if not self._path.exists():
            return None

        try:
            text = self._read_text()
        except OSError as e:
            raise StorageError(f"Failed to read ledger file {self._path}: {e}")

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageError(f"Ledger file {self._path} is not valid JSON: {e}")

        if not isinstance(data, dict):
            raise StorageError(
                f"Ledger file {self._path} must hold a JSON object, got {type(data).__name__}"
            )
        return data

    def save(self, snapshot: Snapshot) -> None:
        """Write the snapshot atomically."""
        text = json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False)
        try:
            self._write_text(text)
        except OSError as e:
            raise StorageError(f"Failed to write ledger file {self._path}: {e}")
