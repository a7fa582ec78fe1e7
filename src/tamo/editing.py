"""Editable Markdown documents for tasks and memos.

A record is rendered as Markdown with YAML front matter, handed to the
user's editor, and parsed back. Parsed values are validated before any
mutator runs, so a bad edit leaves the record as it was.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import frontmatter
import yaml

from tamo.errors import MalformedDocumentError
from tamo.integrity import resolve_memo_refs, split_refs
from tamo.model import Memo, Store, Task

logger = logging.getLogger(__name__)


@dataclass
class TaskDocument:
    title: str
    description: str = ""
    memo_refs: list[str] = field(default_factory=list)


@dataclass
class MemoDocument:
    title: str | None
    content: str = ""


def _load(text: str) -> frontmatter.Post:
    try:
        return frontmatter.loads(text)
    except yaml.YAMLError as e:
        raise MalformedDocumentError(f"invalid front matter: {e}") from e


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ── Tasks ─────────────────────────────────────────────────────


def render_task(task: Task) -> str:
    post = frontmatter.Post(
        task.description,
        title=task.title,
        memo_refs=list(task.memo_refs),
    )
    return frontmatter.dumps(post) + "\n"


def parse_task(text: str) -> TaskDocument:
    post = _load(text)
    title = _optional_str(post.metadata.get("title"))
    if title is None:
        raise MalformedDocumentError("edited task has no title")

    raw_refs = post.metadata.get("memo_refs") or []
    if isinstance(raw_refs, str):
        refs = split_refs(raw_refs)
    else:
        refs = [str(ref).strip() for ref in raw_refs if str(ref).strip()]
    return TaskDocument(title=title, description=post.content.strip(), memo_refs=refs)


def apply_task_document(store: Store, task: Task, text: str) -> Task:
    """Parse an edited task document and apply it to task."""
    doc = parse_task(text)
    memo_ids = resolve_memo_refs(store, doc.memo_refs)
    if doc.title != task.title:
        task.rename(doc.title)
    if doc.description != task.description:
        task.describe(doc.description)
    if memo_ids != task.memo_refs:
        task.set_memo_refs(memo_ids)
    logger.info("Applied edits to task %s", task.id[:8])
    return task


# ── Memos ─────────────────────────────────────────────────────


def render_memo(memo: Memo) -> str:
    post = frontmatter.Post(memo.content, title=memo.title)
    return frontmatter.dumps(post) + "\n"


def parse_memo(text: str) -> MemoDocument:
    post = _load(text)
    return MemoDocument(
        title=_optional_str(post.metadata.get("title")),
        content=post.content.strip(),
    )


def apply_memo_document(memo: Memo, text: str) -> Memo:
    """Parse an edited memo document and apply it to memo."""
    doc = parse_memo(text)
    if doc.title != memo.title:
        memo.retitle(doc.title)
    if doc.content != memo.content:
        memo.rewrite(doc.content)
    logger.info("Applied edits to memo %s", memo.id[:8])
    return memo
