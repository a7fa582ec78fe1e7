"""Tests for id resolution and guarded removal."""

from __future__ import annotations

import pytest

from tamo.errors import AmbiguousReferenceError, NotFoundError, ReferentialConflictError
from tamo.integrity import (
    dangling_refs,
    referencing_tasks,
    remove_memo,
    remove_task,
    resolve_memo,
    resolve_memo_refs,
    resolve_task,
    set_task_refs,
    split_refs,
)
from tamo.model import Memo, Store, Task


def _memo(memo_id: str, content: str = "") -> Memo:
    memo = Memo.create(content)
    memo.id = memo_id
    return memo


@pytest.fixture
def store() -> Store:
    memos = [
        _memo("aaaa1111-0000-4000-8000-000000000001", "first"),
        _memo("aaaa2222-0000-4000-8000-000000000002", "second"),
        _memo("bbbb3333-0000-4000-8000-000000000003", "third"),
    ]
    t1 = Task.create("uses first", memo_refs=[memos[0].id], order=1.0)
    t2 = Task.create("uses first and third", memo_refs=[memos[0].id, memos[2].id], order=2.0)
    t3 = Task.create("no refs", order=3.0)
    return Store(tasks=[t1, t2, t3], memos=memos)


class TestResolve:
    def test_full_id(self, store: Store):
        memo = store.memos[1]
        assert resolve_memo(store, memo.id) is memo

    def test_unique_prefix(self, store: Store):
        assert resolve_memo(store, "bbbb").id.startswith("bbbb3333")
        assert resolve_memo(store, "aaaa2").id.startswith("aaaa2222")

    def test_ambiguous_prefix_fails(self, store: Store):
        with pytest.raises(AmbiguousReferenceError) as exc:
            resolve_memo(store, "aaaa")
        assert len(exc.value.candidates) == 2

    def test_no_match_fails(self, store: Store):
        with pytest.raises(NotFoundError):
            resolve_memo(store, "ffff")

    def test_empty_ref_fails(self, store: Store):
        with pytest.raises(NotFoundError):
            resolve_memo(store, "  ")

    def test_resolve_task_prefix(self, store: Store):
        task = store.tasks[2]
        assert resolve_task(store, task.id[:8]) is task

    def test_task_ref_does_not_find_memos(self, store: Store):
        with pytest.raises(NotFoundError):
            resolve_task(store, "bbbb3333")

    def test_resolve_refs_dedupes_in_order(self, store: Store):
        ids = resolve_memo_refs(store, ["bbbb", " aaaa1 ", "", "bbbb3333"])
        assert ids == [store.memos[2].id, store.memos[0].id]

    def test_split_refs(self):
        assert split_refs("a, b,,c ") == ["a", "b", "c"]
        assert split_refs("") == []


class TestSetTaskRefs:
    def test_sets_resolved_ids(self, store: Store):
        task = store.tasks[2]
        set_task_refs(store, task, ["aaaa2", "bbbb"])
        assert task.memo_refs == [store.memos[1].id, store.memos[2].id]

    def test_failure_leaves_task_unchanged(self, store: Store):
        task = store.tasks[0]
        before = list(task.memo_refs)
        with pytest.raises(NotFoundError):
            set_task_refs(store, task, ["bbbb", "nope"])
        assert task.memo_refs == before


class TestRemoveMemo:
    def test_unforced_with_referrers_is_blocked(self, store: Store):
        memo_id = store.memos[0].id
        snapshot = store.to_dict()
        with pytest.raises(ReferentialConflictError) as exc:
            remove_memo(store, memo_id)
        assert {t.title for t in exc.value.tasks} == {"uses first", "uses first and third"}
        assert store.to_dict() == snapshot

    def test_forced_prunes_every_reference(self, store: Store):
        memo_id = store.memos[0].id
        removed = remove_memo(store, memo_id, force=True)
        assert removed.id == memo_id
        assert store.find_memo(memo_id) is None
        assert all(memo_id not in t.memo_refs for t in store.tasks)
        assert store.tasks[1].memo_refs == [store.memos[1].id]

    def test_forced_prunes_duplicate_refs(self, store: Store):
        memo_id = store.memos[2].id
        store.tasks[2].memo_refs = [memo_id, memo_id]
        remove_memo(store, memo_id, force=True)
        assert store.tasks[2].memo_refs == []

    def test_unreferenced_memo_removed_without_force(self, store: Store):
        memo = store.memos[1]
        remove_memo(store, memo.id)
        assert store.find_memo(memo.id) is None
        assert len(store.memos) == 2

    def test_missing_memo(self, store: Store):
        with pytest.raises(NotFoundError):
            remove_memo(store, "does-not-exist", force=True)


class TestRemoveTask:
    def test_memos_untouched(self, store: Store):
        task = store.tasks[1]
        remove_task(store, task.id)
        assert store.find_task(task.id) is None
        assert len(store.memos) == 3

    def test_missing_task(self, store: Store):
        with pytest.raises(NotFoundError):
            remove_task(store, "nope")


class TestQueries:
    def test_referencing_tasks(self, store: Store):
        titles = [t.title for t in referencing_tasks(store, store.memos[2].id)]
        assert titles == ["uses first and third"]

    def test_dangling_refs(self, store: Store):
        task = store.tasks[2]
        task.memo_refs = ["ghost", store.memos[0].id]
        assert dangling_refs(store, task) == ["ghost"]
