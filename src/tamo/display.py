"""Plain-text rendering of tasks and memos for the terminal."""

from __future__ import annotations

from tamo.integrity import dangling_refs, referencing_tasks
from tamo.model import Memo, Store, Task

SHORT_ID_LENGTH = 8
NO_TITLE = "<no title>"
_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
_PREVIEW_LIMIT = 50


def short_id(record_id: str, length: int = SHORT_ID_LENGTH) -> str:
    return record_id[:length]


def memo_title(memo: Memo) -> str:
    return memo.title if memo.title is not None else NO_TITLE


def content_preview(content: str) -> str:
    """First line of content, cut to fit a listing column."""
    first_line = content.split("\n", 1)[0]
    if len(first_line) > _PREVIEW_LIMIT:
        return first_line[: _PREVIEW_LIMIT - 3] + "..."
    return first_line


def format_task_line(task: Task, id_length: int = SHORT_ID_LENGTH) -> str:
    status = "[x]" if task.done else "[ ]"
    return f"{short_id(task.id, id_length)}  {task.order:.1f}  {status}  {task.title}"


def format_memo_line(memo: Memo, id_length: int = SHORT_ID_LENGTH) -> str:
    return f"{short_id(memo.id, id_length)}  {memo_title(memo)}  {content_preview(memo.content)}"


def format_task_detail(store: Store, task: Task, id_length: int = SHORT_ID_LENGTH) -> str:
    lines = [
        f"Task ID: {task.id}",
        f"Title: {task.title}",
        f"Order: {task.order:.1f}",
        f"Status: {'[x] Completed' if task.done else '[ ] Not completed'}",
        f"Created: {task.created_at.strftime(_DATETIME_FORMAT)}",
        f"Updated: {task.updated_at.strftime(_DATETIME_FORMAT)}",
    ]
    if task.description:
        lines += ["", "Description:", task.description]
    if task.memo_refs:
        missing = set(dangling_refs(store, task))
        lines += ["", "Referenced Memos:"]
        for memo_id in task.memo_refs:
            if memo_id in missing:
                label = "<memo not found>"
            else:
                label = memo_title(store.find_memo(memo_id))
            lines.append(f"  {short_id(memo_id, id_length)}  {label}")
    return "\n".join(lines)


def format_memo_detail(store: Store, memo: Memo, id_length: int = SHORT_ID_LENGTH) -> str:
    lines = [f"Memo ID: {memo.id}"]
    if memo.title is not None:
        lines.append(f"Title: {memo.title}")
    lines += [
        f"Created: {memo.created_at.strftime(_DATETIME_FORMAT)}",
        f"Updated: {memo.updated_at.strftime(_DATETIME_FORMAT)}",
    ]
    referrers = referencing_tasks(store, memo.id)
    if referrers:
        lines += ["", "Reference Tasks:"]
        lines += [f"  {short_id(t.id, id_length)}  {t.title}" for t in referrers]
    lines += ["", "Content:", memo.content]
    return "\n".join(lines)


def flatten_task(store: Store, task: Task, id_length: int = SHORT_ID_LENGTH) -> str:
    """Render a task as one Markdown document with its memos inlined."""
    parts = [f"# {task.title}", f"**Status:** {'Completed' if task.done else 'Not completed'}"]
    if task.description:
        parts += ["## Description", task.description]
    if task.memo_refs:
        missing = set(dangling_refs(store, task))
        parts.append("## Referenced Memos")
        for memo_id in task.memo_refs:
            if memo_id in missing:
                parts.append(f"### Memo {short_id(memo_id, id_length)} (not found)")
                continue
            memo = store.find_memo(memo_id)
            heading = memo.title
            if heading is None:
                heading = f"Memo {short_id(memo_id, id_length)}"
            parts += [f"### {heading}", memo.content]
    return "\n\n".join(parts) + "\n"
