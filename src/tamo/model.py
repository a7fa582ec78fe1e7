"""Entity model: Task, Memo and the Store aggregate.

Records are plain dataclasses mutated in place through small mutators that
keep ``updated_at`` current. The Store is an explicit value handed to every
operation; callers load it before and save it after.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

logger = logging.getLogger(__name__)

STORE_VERSION = 1
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def new_id() -> str:
    """Generate a fresh identifier (UUID4, 36 characters)."""
    return str(uuid.uuid4())


def _finite_order(order: float) -> float:
    order = float(order)
    if not math.isfinite(order):
        raise ValueError(f"task order must be finite, got {order!r}")
    return order


def utcnow() -> datetime:
    """Current UTC time truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def format_timestamp(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str | None) -> datetime:
    """Parse a stored timestamp; a missing value becomes "now"."""
    if not value:
        return utcnow()
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).replace(microsecond=0)


@dataclass
class Task:
    """An orderable, completable unit of work."""

    id: str
    title: str
    description: str = ""
    order: float = 0.0
    done: bool = False
    memo_refs: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(
        cls,
        title: str,
        description: str = "",
        memo_refs: Iterable[str] = (),
        order: float = 0.0,
    ) -> Task:
        if not title or not title.strip():
            raise ValueError("task title must not be empty")
        now = utcnow()
        return cls(
            id=new_id(),
            title=title,
            description=description,
            order=_finite_order(order),
            memo_refs=list(memo_refs),
            created_at=now,
            updated_at=now,
        )

    # ── Mutators ──────────────────────────────────────────────

    def touch(self) -> None:
        self.updated_at = utcnow()

    def rename(self, title: str) -> None:
        if not title or not title.strip():
            raise ValueError("task title must not be empty")
        self.title = title
        self.touch()

    def describe(self, description: str) -> None:
        self.description = description
        self.touch()

    def move_to(self, order: float) -> None:
        self.order = _finite_order(order)
        self.touch()

    def mark_done(self) -> None:
        self.done = True
        self.touch()

    def mark_undone(self) -> None:
        self.done = False
        self.touch()

    def set_memo_refs(self, memo_ids: Iterable[str]) -> None:
        self.memo_refs = list(memo_ids)
        self.touch()

    def drop_memo_ref(self, memo_id: str) -> bool:
        """Remove every occurrence of memo_id. Returns True if any was removed."""
        kept = [ref for ref in self.memo_refs if ref != memo_id]
        if len(kept) == len(self.memo_refs):
            return False
        self.memo_refs = kept
        self.touch()
        return True

    # ── Serialization ─────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "order": self.order,
            "done": self.done,
            "memo_refs": list(self.memo_refs),
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Task:
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            description=data.get("description") or "",
            order=float(data.get("order") or 0.0),
            done=bool(data.get("done", False)),
            memo_refs=[str(ref) for ref in data.get("memo_refs") or []],
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
        )


@dataclass
class Memo:
    """An unordered note. ``title`` is None when the memo has no title."""

    id: str
    title: str | None = None
    content: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(cls, content: str = "", title: str | None = None) -> Memo:
        now = utcnow()
        return cls(id=new_id(), title=title, content=content, created_at=now, updated_at=now)

    def retitle(self, title: str | None) -> None:
        self.title = title
        self.updated_at = utcnow()

    def rewrite(self, content: str) -> None:
        self.content = content
        self.updated_at = utcnow()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Memo:
        title = data.get("title")
        return cls(
            id=str(data["id"]),
            title=None if title is None else str(title),
            content=data.get("content") or "",
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
        )


@dataclass
class Store:
    """The full collection of tasks and memos."""

    version: int = STORE_VERSION
    tasks: list[Task] = field(default_factory=list)
    memos: list[Memo] = field(default_factory=list)

    # ── Lookup ────────────────────────────────────────────────

    def find_task(self, task_id: str) -> Task | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def find_memo(self, memo_id: str) -> Memo | None:
        for memo in self.memos:
            if memo.id == memo_id:
                return memo
        return None

    def max_order(self) -> float:
        """Highest task order, floored at 0.0 (0.0 for an empty store)."""
        max_order = 0.0
        for task in self.tasks:
            if task.order > max_order:
                max_order = task.order
        return max_order

    def min_order(self) -> float:
        """Lowest task order (0.0 for an empty store)."""
        if not self.tasks:
            return 0.0
        return min(task.order for task in self.tasks)

    # ── Mutation ──────────────────────────────────────────────

    def add_task(self, task: Task) -> None:
        if self.find_task(task.id) is not None:
            raise ValueError(f"duplicate task id: {task.id}")
        self.tasks.append(task)

    def add_memo(self, memo: Memo) -> None:
        if self.find_memo(memo.id) is not None:
            raise ValueError(f"duplicate memo id: {memo.id}")
        self.memos.append(memo)

    def commit(self, tasks: Iterable[Task], memos: Iterable[Memo]) -> None:
        """Add tasks and memos together, or nothing at all."""
        tasks = list(tasks)
        memos = list(memos)
        task_ids = [t.id for t in tasks]
        memo_ids = [m.id for m in memos]
        if len(set(task_ids)) != len(task_ids) or any(self.find_task(i) for i in task_ids):
            raise ValueError("duplicate task id in commit")
        if len(set(memo_ids)) != len(memo_ids) or any(self.find_memo(i) for i in memo_ids):
            raise ValueError("duplicate memo id in commit")
        self.memos.extend(memos)
        self.tasks.extend(tasks)
        logger.debug("Committed %d task(s), %d memo(s)", len(tasks), len(memos))

    def discard_task(self, task_id: str) -> Task | None:
        """Remove a task without any integrity checks."""
        for i, task in enumerate(self.tasks):
            if task.id == task_id:
                return self.tasks.pop(i)
        return None

    def discard_memo(self, memo_id: str) -> Memo | None:
        """Remove a memo without touching task references."""
        for i, memo in enumerate(self.memos):
            if memo.id == memo_id:
                return self.memos.pop(i)
        return None

    # ── Serialization ─────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "tasks": [t.to_dict() for t in self.tasks],
            "memos": [m.to_dict() for m in self.memos],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Store:
        return cls(
            version=int(data.get("version", STORE_VERSION)),
            tasks=[Task.from_dict(t) for t in data.get("tasks") or []],
            memos=[Memo.from_dict(m) for m in data.get("memos") or []],
        )
