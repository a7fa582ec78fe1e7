"""Markdown ingestion: one document becomes a task plus extracted memos.

Document shape::

    # Task title

    Free text that becomes the description.

    ```memo
    Anything here becomes a standalone memo.
    ```

The first ``# `` heading supplies the title and is removed. Each ``memo``
fenced block becomes an untitled Memo and is replaced in place by a
``[memo](<id>)`` marker. A block opens on a line holding only the memo
fence shown above and closes on a line holding only the three backticks.
A block that never closes, or meets another fence first, is left verbatim.
Nothing reaches the Store until ``ingest`` commits the task and its memos
together.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from tamo.errors import MalformedDocumentError
from tamo.model import Memo, Store, Task
from tamo.ordering import append_order

logger = logging.getLogger(__name__)

STDIN_DEFAULT_TITLE = "Task from stdin"

_TITLE_RE = re.compile(r"^# +(\S.*?)[ \t]*$", re.MULTILINE)
_FENCE = "```"
_MEMO_FENCE = "```memo"


def memo_marker(memo_id: str) -> str:
    """The inline reference left where a memo block used to be."""
    return f"[memo]({memo_id})"


@dataclass
class IngestResult:
    """A parsed but not yet committed task and its memos."""

    task: Task
    memos: list[Memo] = field(default_factory=list)


def _extract_title(text: str, default_title: str | None) -> tuple[str, str]:
    match = _TITLE_RE.search(text)
    if match:
        end = match.end()
        if text.startswith("\n", end):
            end += 1
        return match.group(1), text[: match.start()] + text[end:]
    if default_title is None or not default_title.strip():
        raise MalformedDocumentError("document has no '# ' heading and no default title was given")
    return default_title, text


def _closing_fence(lines: list[str], start: int) -> int | None:
    """Index of the bare fence closing a memo block opened at start.

    None when the input ends or another fence opens first.
    """
    for i in range(start + 1, len(lines)):
        line = lines[i].rstrip()
        if line == _FENCE:
            return i
        if line.startswith(_FENCE):
            return None
    return None


def _extract_memos(text: str) -> tuple[str, list[Memo]]:
    lines = text.split("\n")
    kept: list[str] = []
    memos: list[Memo] = []
    i = 0
    while i < len(lines):
        if lines[i].rstrip() != _MEMO_FENCE:
            kept.append(lines[i])
            i += 1
            continue
        end = _closing_fence(lines, i)
        if end is None:
            # malformed block stays verbatim; scanning resumes on the next line
            kept.append(lines[i])
            i += 1
            continue
        memo = Memo.create(content="\n".join(lines[i + 1 : end]))
        memos.append(memo)
        kept.append(memo_marker(memo.id))
        i = end + 1
    return "\n".join(kept), memos


def parse_document(text: str, store: Store, default_title: str | None = None) -> IngestResult:
    """Parse a Markdown document into an uncommitted task and memos.

    The task's order is computed with the append rule against the store as it
    is now; the store itself is not modified.
    """
    text = text.replace("\r\n", "\n")
    title, body = _extract_title(text, default_title)
    body, memos = _extract_memos(body)

    task = Task.create(
        title=title,
        description=body.strip(),
        memo_refs=[memo.id for memo in memos],
        order=append_order(store),
    )
    logger.debug("Parsed task %r with %d memo block(s)", title, len(memos))
    return IngestResult(task=task, memos=memos)


def parse_file(path: Path, store: Store, default_title: str | None = None) -> IngestResult:
    """Parse a Markdown file; the fallback title defaults to the file stem."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    return parse_document(text, store, default_title=default_title or path.stem)


def parse_stream(
    stream: TextIO, store: Store, default_title: str = STDIN_DEFAULT_TITLE
) -> IngestResult:
    return parse_document(stream.read(), store, default_title=default_title)


def ingest(store: Store, result: IngestResult) -> Task:
    """Commit a parsed task and all of its memos to the store at once."""
    store.commit([result.task], result.memos)
    logger.info(
        "Ingested task %s (%r) with %d memo(s)",
        result.task.id[:8],
        result.task.title,
        len(result.memos),
    )
    return result.task
