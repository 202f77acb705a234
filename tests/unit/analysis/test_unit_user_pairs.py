# tests/unit/analysis/test_unit_user_pairs.py — v1
"""Tests for analysis/user_pairs.py and analysis/doc_tree.py."""

from __future__ import annotations

from datetime import timedelta

import pytest

from linklore.analysis.doc_tree import (
    ancestor_path,
    earliest_root,
    index_documents,
    merged_branch_path,
    reply_depth,
)
from linklore.analysis.user_pairs import (
    UserPair,
    get_user_pair_documents,
    identify_user_pairs,
    normalize_pair,
    pair_documents,
    pairs_from_documents,
)
from linklore.core.models import Document

from tests.conftest import BASE_TIME, seed_document


def _doc(doc_id: str, author: str, parent: str | None = None, minutes: int = 0) -> Document:
    return Document(
        id=doc_id,
        topic_id="t1",
        author_id=author,
        parent_id=parent,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def _thread() -> list[Document]:
    """alice posts, bob replies, carol replies to bob, alice answers bob."""
    return [
        _doc("r1", "alice"),
        _doc("d2", "bob", "r1", minutes=1),
        _doc("d3", "carol", "d2", minutes=2),
        _doc("d4", "alice", "d2", minutes=3),
    ]


def _keys(pairs: list[UserPair]) -> set[tuple[str, str]]:
    return {(p.user_id1, p.user_id2) for p in pairs}


class TestNormalizePair:
    def test_sorted(self):
        assert normalize_pair("bob", "alice") == ("alice", "bob")
        assert normalize_pair("alice", "bob") == ("alice", "bob")


class TestDocTree:
    def test_earliest_root(self):
        docs = [_doc("late", "x", minutes=5), _doc("early", "y", minutes=1), _doc("c", "z", "early")]
        assert earliest_root(docs).id == "early"

    def test_earliest_root_empty(self):
        assert earliest_root([]) is None

    def test_reply_depth(self):
        by_id = index_documents(_thread())
        assert reply_depth("r1", by_id) == 0
        assert reply_depth("d2", by_id) == 1
        assert reply_depth("d3", by_id) == 2

    def test_ancestor_path(self):
        by_id = index_documents(_thread())
        assert ancestor_path("d3", by_id) == ["r1", "d2", "d3"]

    def test_ancestor_path_limit_keeps_nearest(self):
        by_id = index_documents(_thread())
        assert ancestor_path("d3", by_id, limit=2) == ["d2", "d3"]

    def test_ancestor_path_missing_parent(self):
        by_id = index_documents([_doc("orphan", "x", "gone")])
        assert ancestor_path("orphan", by_id) == ["gone", "orphan"]

    def test_merged_branch_path(self):
        assert merged_branch_path(["r1", "d2", "d3"], ["r1", "d2", "d4"]) == [
            "r1", "d2", "d3", "d4",
        ]


class TestPairsFromDocuments:
    def test_direct_replies_only(self):
        pairs = pairs_from_documents(_thread())
        assert _keys(pairs) == {("alice", "bob"), ("bob", "carol")}

    def test_no_indirect_pair(self):
        pairs = pairs_from_documents(_thread())
        assert ("alice", "carol") not in _keys(pairs)

    def test_repeated_exchange_merged(self):
        pair = next(p for p in pairs_from_documents(_thread()) if p.involves("alice") and p.involves("bob"))
        assert pair.doc_ids == ["r1", "d2", "d4"]
        assert [p.path for p in pair.discussion_paths] == [["r1", "d2"], ["d2", "d4"]]
        assert [p.depth for p in pair.discussion_paths] == [1, 2]

    def test_direction(self):
        pair = next(p for p in pairs_from_documents(_thread()) if p.involves("alice") and p.involves("bob"))
        # bob (user2) replied first, then alice (user1)
        assert [p.direction for p in pair.discussion_paths] == ["user2->user1", "user1->user2"]

    def test_self_reply_ignored(self):
        docs = [_doc("r1", "alice"), _doc("d2", "alice", "r1", minutes=1)]
        assert pairs_from_documents(docs) == []

    def test_parentless_document_counts_as_reply_to_original(self):
        docs = [_doc("r1", "alice"), _doc("loose", "dave", minutes=4)]
        pairs = pairs_from_documents(docs)
        assert _keys(pairs) == {("alice", "dave")}
        assert pairs[0].discussion_paths[0].depth == 1
        assert pairs[0].discussion_paths[0].path == ["r1", "loose"]

    def test_reply_to_unknown_parent_ignored(self):
        docs = [_doc("r1", "alice"), _doc("d2", "bob", "elsewhere", minutes=1)]
        assert pairs_from_documents(docs) == []


class TestPairDocuments:
    def test_exchange_documents(self):
        docs = pair_documents(_thread(), "bob", "alice")
        assert [d.id for d in docs] == ["r1", "d2", "d4"]

    def test_no_exchange(self):
        assert pair_documents(_thread(), "alice", "carol") == []


class TestRepositoryHelpers:
    @pytest.mark.asyncio
    async def test_identify_user_pairs(self, repository):
        await seed_document(repository, "r1", author_id="alice")
        await seed_document(repository, "d2", author_id="bob", parent_id="r1", minutes=1)
        await seed_document(repository, "x1", topic_id="t2", author_id="carol")
        pairs = await identify_user_pairs(repository, "t1")
        assert _keys(pairs) == {("alice", "bob")}

    @pytest.mark.asyncio
    async def test_get_user_pair_documents(self, repository):
        await seed_document(repository, "r1", author_id="alice")
        await seed_document(repository, "d2", author_id="bob", parent_id="r1", minutes=1)
        docs = await get_user_pair_documents(repository, "t1", "alice", "bob")
        assert [d.id for d in docs] == ["r1", "d2"]
