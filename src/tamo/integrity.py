"""Referential integrity between tasks and the memos they reference.

Identifiers may be given in full or as a unique prefix (the 8-character short
id shown in listings). Resolution is a linear scan that fails loudly on zero
or multiple matches instead of picking the first candidate.
"""

from __future__ import annotations

import logging
from typing import Iterable, TypeVar

from tamo.errors import AmbiguousReferenceError, NotFoundError, ReferentialConflictError
from tamo.model import Memo, Store, Task

logger = logging.getLogger(__name__)

_Record = TypeVar("_Record", Task, Memo)


def _resolve(records: Iterable[_Record], ref: str, kind: str) -> _Record:
    ref = ref.strip()
    if not ref:
        raise NotFoundError(kind, ref)
    candidates: list[_Record] = []
    for record in records:
        if record.id == ref:
            return record
        if record.id.startswith(ref):
            candidates.append(record)
    if not candidates:
        raise NotFoundError(kind, ref)
    if len(candidates) > 1:
        raise AmbiguousReferenceError(kind, ref, [c.id for c in candidates])
    logger.debug("Resolved %s prefix %s -> %s", kind, ref, candidates[0].id)
    return candidates[0]


def resolve_task(store: Store, ref: str) -> Task:
    """Find a task by full id or unique prefix."""
    return _resolve(store.tasks, ref, "task")


def resolve_memo(store: Store, ref: str) -> Memo:
    """Find a memo by full id or unique prefix."""
    return _resolve(store.memos, ref, "memo")


def resolve_memo_refs(store: Store, refs: Iterable[str]) -> list[str]:
    """Resolve memo references to full ids, in order, without duplicates.

    Blank entries are skipped, so "a1b2, ,c3d4" is accepted as two refs.
    """
    resolved: list[str] = []
    for ref in refs:
        if not ref.strip():
            continue
        memo_id = resolve_memo(store, ref).id
        if memo_id not in resolved:
            resolved.append(memo_id)
    return resolved


def split_refs(text: str) -> list[str]:
    """Split a comma-separated reference list."""
    return [part.strip() for part in text.split(",") if part.strip()]


def set_task_refs(store: Store, task: Task, refs: Iterable[str]) -> list[str]:
    """Replace a task's memo references. The task is untouched on failure."""
    memo_ids = resolve_memo_refs(store, refs)
    task.set_memo_refs(memo_ids)
    return memo_ids


def referencing_tasks(store: Store, memo_id: str) -> list[Task]:
    return [task for task in store.tasks if memo_id in task.memo_refs]


def dangling_refs(store: Store, task: Task) -> list[str]:
    """Memo ids the task references that no longer exist."""
    return [ref for ref in task.memo_refs if store.find_memo(ref) is None]


def remove_memo(store: Store, memo_id: str, force: bool = False) -> Memo:
    """Remove a memo, refusing while tasks reference it unless forced.

    A forced removal prunes the id from every task, so no reference is left
    dangling. Raises ReferentialConflictError (store unchanged) otherwise.
    """
    memo = store.find_memo(memo_id)
    if memo is None:
        raise NotFoundError("memo", memo_id)

    referrers = referencing_tasks(store, memo_id)
    if referrers and not force:
        raise ReferentialConflictError(memo_id, referrers)

    store.discard_memo(memo_id)
    for task in referrers:
        task.drop_memo_ref(memo_id)
    if referrers:
        logger.warning(
            "Forced removal of memo %s pruned references from %d task(s)",
            memo_id[:8],
            len(referrers),
        )
    logger.info("Removed memo %s", memo_id[:8])
    return memo


def remove_task(store: Store, task_id: str) -> Task:
    """Remove a task. Memos are never owned by a task and stay put."""
    task = store.discard_task(task_id)
    if task is None:
        raise NotFoundError("task", task_id)
    logger.info("Removed task %s", task_id[:8])
    return task
