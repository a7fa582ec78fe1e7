"""Error types for tamo, plus traceback logging for the CLI.

Core operations raise these to their immediate caller; only the CLI catches
them, printing a clean message while the full traceback of anything
unexpected goes to the error log.
"""

from __future__ import annotations

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tamo.model import Task

ERROR_LOG_NAME = "tamo-errors.log"


class TamoError(Exception):
    """Base class for every failure tamo reports to its caller."""


class NotFoundError(TamoError):
    """An identifier (task, memo, or referenced memo) resolves to nothing."""

    def __init__(self, kind: str, ref: str) -> None:
        self.kind = kind
        self.ref = ref
        super().__init__(f"no {kind} found with ID: {ref}")


class AmbiguousReferenceError(TamoError):
    """A short identifier matches more than one record."""

    def __init__(self, kind: str, ref: str, candidates: list[str]) -> None:
        self.kind = kind
        self.ref = ref
        self.candidates = candidates
        super().__init__(
            f"{kind} ID prefix '{ref}' is ambiguous ({len(candidates)} matches: "
            + ", ".join(c[:8] for c in candidates)
            + ")"
        )


class ReferentialConflictError(TamoError):
    """Memo deletion blocked because tasks still reference it."""

    def __init__(self, memo_id: str, tasks: list[Task]) -> None:
        self.memo_id = memo_id
        self.tasks = tasks
        super().__init__(
            f"memo {memo_id[:8]} is referenced by {len(tasks)} task(s); "
            "use --force to remove anyway"
        )


class MalformedDocumentError(TamoError):
    """An ingested or edited document has no usable title."""


class StorageError(TamoError):
    """The data file is missing, unreadable, or could not be written."""


class PrecisionExhaustedWarning(UserWarning):
    """A midpoint order collapsed onto one of its neighbours."""


def log_exception(log_dir: Path, context: str = "") -> Path:
    """Append the current exception's traceback to the error log.

    Args:
        log_dir: Directory holding the log (normally the data directory)
        context: Optional context string (e.g., command name)

    Returns:
        Path to the error log file
    """
    log_path = log_dir / ERROR_LOG_NAME
    timestamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a", encoding="utf-8") as f:
            f.write(f"\n{'=' * 60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write(traceback.format_exc())
    except OSError:
        pass  # best effort
    return log_path
