"""Tests for the in-memory draft store."""

import re

from core.drafts import DRAFT_ID_ALPHABET, Draft, DraftStore, generate_draft_id


class TestGenerateDraftId:
    def test_format(self):
        for _ in range(50):
            assert re.fullmatch(r"[A-Za-z0-9]{8}", generate_draft_id())

    def test_alphabet_has_62_symbols(self):
        assert len(set(DRAFT_ID_ALPHABET)) == 62


class TestDraft:
    def test_untitled(self):
        draft = Draft(content="x", chunks=["x"])
        assert draft.display_title == "Untitled"
        assert draft.updated_at == draft.created_at

    def test_titled(self):
        assert Draft(content="x", chunks=["x"], title="Notes").display_title == "Notes"


class TestDraftStore:
    def test_create_splits_content(self):
        store = DraftStore()
        draft_id, draft = store.create("A" * 400, title="Long")

        assert store.get(draft_id) is draft
        assert draft.content == "A" * 400
        assert draft.chunks == ["A" * 300, "A" * 100]
        assert draft.title == "Long"

    def test_get_missing_returns_none(self):
        assert DraftStore().get("nope1234") is None

    def test_lookup_is_exact(self):
        store = DraftStore(id_factory=lambda: "AbCdEf12")
        store.create("hello")
        assert store.get("abcdef12") is None
        assert store.get("AbCdEf1") is None
        assert "AbCdEf12" in store

    def test_delete(self):
        store = DraftStore()
        draft_id, _ = store.create("hello")

        assert store.delete(draft_id) is True
        assert store.get(draft_id) is None
        assert store.delete(draft_id) is False
        assert len(store) == 0

    def test_list_keeps_insertion_order_and_limit(self):
        ids = iter(["AAAAAAAA", "BBBBBBBB", "CCCCCCCC"])
        store = DraftStore(id_factory=lambda: next(ids))
        for content in ("first", "second", "third"):
            store.create(content)

        listed = store.list(2)
        assert [draft_id for draft_id, _ in listed] == ["AAAAAAAA", "BBBBBBBB"]
        assert len(store) == 3
        assert [draft.content for _, draft in store.list(10)] == ["first", "second", "third"]

    def test_regenerates_taken_id(self):
        ids = iter(["SAMEID00", "SAMEID00", "OTHERID0"])
        store = DraftStore(id_factory=lambda: next(ids))
        first_id, _ = store.create("one")
        second_id, _ = store.create("two")

        assert first_id == "SAMEID00"
        assert second_id == "OTHERID0"
        assert store.get(first_id).content == "one"

    def test_custom_splitter(self):
        store = DraftStore(splitter=lambda content: content.split("|"))
        _, draft = store.create("a|b|c")
        assert draft.chunks == ["a", "b", "c"]

    def test_lock_is_per_draft(self):
        store = DraftStore()
        first_id, _ = store.create("one")
        second_id, _ = store.create("two")

        assert store.lock(first_id) is store.lock(first_id)
        assert store.lock(first_id) is not store.lock(second_id)
