"""Tests for the editor document round-trip."""

from __future__ import annotations

import pytest

from tamo.editing import (
    apply_memo_document,
    apply_task_document,
    parse_memo,
    parse_task,
    render_memo,
    render_task,
)
from tamo.errors import MalformedDocumentError, NotFoundError
from tamo.model import Memo, Store, Task


@pytest.fixture
def store() -> Store:
    memo = Memo.create("body", title="Notes")
    other = Memo.create("other body")
    task = Task.create("Original", description="Some text", memo_refs=[memo.id], order=1.0)
    return Store(tasks=[task], memos=[memo, other])


class TestTaskDocument:
    def test_render_then_parse(self, store: Store):
        task = store.tasks[0]
        doc = parse_task(render_task(task))
        assert doc.title == "Original"
        assert doc.description == "Some text"
        assert doc.memo_refs == task.memo_refs

    def test_unchanged_document_is_a_noop(self, store: Store):
        task = store.tasks[0]
        before = task.to_dict()
        apply_task_document(store, task, render_task(task))
        assert task.to_dict() == before

    def test_apply_changes(self, store: Store):
        task = store.tasks[0]
        other = store.memos[1]
        text = f"---\ntitle: Renamed\nmemo_refs: ['{other.id[:8]}']\n---\n\nNew description\n"
        apply_task_document(store, task, text)
        assert task.title == "Renamed"
        assert task.description == "New description"
        assert task.memo_refs == [other.id]

    def test_comma_separated_refs(self):
        doc = parse_task("---\ntitle: T\nmemo_refs: 'abc, def'\n---\n")
        assert doc.memo_refs == ["abc", "def"]

    def test_missing_title(self):
        with pytest.raises(MalformedDocumentError):
            parse_task("---\nmemo_refs: []\n---\nbody\n")

    def test_no_front_matter(self):
        with pytest.raises(MalformedDocumentError):
            parse_task("just a body\n")

    def test_invalid_yaml(self):
        with pytest.raises(MalformedDocumentError):
            parse_task("---\ntitle: [unclosed\n---\nbody\n")

    def test_unknown_ref_leaves_task_unchanged(self, store: Store):
        task = store.tasks[0]
        before = task.to_dict()
        with pytest.raises(NotFoundError):
            apply_task_document(store, task, "---\ntitle: Changed\nmemo_refs: [zzzz]\n---\n")
        assert task.to_dict() == before


class TestMemoDocument:
    def test_render_then_parse(self, store: Store):
        memo = store.memos[0]
        doc = parse_memo(render_memo(memo))
        assert doc.title == "Notes"
        assert doc.content == "body"

    def test_untitled_round_trip(self, store: Store):
        memo = store.memos[1]
        doc = parse_memo(render_memo(memo))
        assert doc.title is None
        assert doc.content == "other body"

    def test_blank_title_clears(self, store: Store):
        memo = store.memos[0]
        apply_memo_document(memo, "---\ntitle: ''\n---\nrewritten\n")
        assert memo.title is None
        assert memo.content == "rewritten"

    def test_plain_text_keeps_no_title(self):
        memo = Memo.create("old")
        apply_memo_document(memo, "replaced entirely\n")
        assert memo.title is None
        assert memo.content == "replaced entirely"
