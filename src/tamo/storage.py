"""JSON persistence for the Store.

The whole Store is read at the start of a command and written back whole at
the end. Writes go to a temporary file in the same directory which is then
renamed over the data file, so a crash mid-write leaves the previous state.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from tamo.errors import StorageError
from tamo.model import Store

logger = logging.getLogger(__name__)

DEFAULT_DIR_NAME = ".tamo"
DEFAULT_FILE_NAME = "data.json"


class Storage:
    """Load/save access to a single data file."""

    def __init__(self, dir_path: Path | None = None, file_path: Path | None = None) -> None:
        self.dir_path = Path(dir_path) if dir_path is not None else Path(DEFAULT_DIR_NAME)
        self.file_path = (
            Path(file_path) if file_path is not None else self.dir_path / DEFAULT_FILE_NAME
        )

    def exists(self) -> bool:
        return self.file_path.is_file()

    def initialize(self) -> bool:
        """Create the directory and an empty data file. Idempotent.

        Returns True if a new data file was written.
        """
        self.dir_path.mkdir(parents=True, exist_ok=True)
        if self.exists():
            return False
        self.save(Store())
        logger.info("Initialized empty store at %s", self.file_path)
        return True

    def load(self) -> Store:
        if not self.exists():
            raise StorageError(f"data file not found: {self.file_path} (run 'tamo init' first)")
        try:
            data = json.loads(self.file_path.read_text(encoding="utf-8"))
        except OSError as e:
            raise StorageError(f"failed to read data file: {e}") from e
        except json.JSONDecodeError as e:
            raise StorageError(f"failed to parse data file {self.file_path}: {e}") from e
        try:
            store = Store.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise StorageError(f"invalid data in {self.file_path}: {e}") from e
        logger.debug(
            "Loaded %d task(s), %d memo(s) from %s",
            len(store.tasks),
            len(store.memos),
            self.file_path,
        )
        return store

    def save(self, store: Store) -> None:
        """Write the store atomically (temp file + rename)."""
        payload = json.dumps(store.to_dict(), indent=2, ensure_ascii=False) + "\n"
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix="data.", suffix=".json.tmp", dir=self.file_path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.file_path)
        except OSError as e:
            raise StorageError(f"failed to save data: {e}") from e
        finally:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
        logger.debug("Saved store to %s", self.file_path)
