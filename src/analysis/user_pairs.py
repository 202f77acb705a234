# src/analysis/user_pairs.py — v1
"""Identify pairs of users who replied to each other within a topic.

Rules:
1. A reply to a document by a different author forms a pair.
2. Repeated exchanges between the same two users merge into one pair with
   one discussion path per reply edge.
3. Indirect relations do not count: A replies to B, C replies to A gives
   A-B and A-C, never B-C.
4. A parentless document other than the topic's original post is treated
   as a direct reply to that post (depth 1).

User ids within a pair are sorted so (a, b) and (b, a) are the same pair.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from linklore.analysis.doc_tree import earliest_root, index_documents, reply_depth
from linklore.core.models import DiscussionPath, Document

if TYPE_CHECKING:
    from linklore.storage.base_repository import BaseRepository

logger = logging.getLogger(__name__)


def normalize_pair(user_id1: str, user_id2: str) -> tuple[str, str]:
    """Order two user ids so the smaller comes first."""
    return (user_id1, user_id2) if user_id1 <= user_id2 else (user_id2, user_id1)


@dataclass
class UserPair:
    user_id1: str
    user_id2: str
    doc_ids: list[str] = field(default_factory=list)
    discussion_paths: list[DiscussionPath] = field(default_factory=list)

    def involves(self, user_id: str) -> bool:
        return user_id in (self.user_id1, self.user_id2)

    def add_edge(self, parent: Document, child: Document, depth: int) -> None:
        for doc_id in (parent.id, child.id):
            if doc_id not in self.doc_ids:
                self.doc_ids.append(doc_id)
        direction = "user1->user2" if child.author_id == self.user_id1 else "user2->user1"
        self.discussion_paths.append(
            DiscussionPath(path=[parent.id, child.id], depth=depth, direction=direction)
        )


def pairs_from_documents(docs: list[Document]) -> list[UserPair]:
    """Pure pair identification over one topic's documents."""
    by_id = index_documents(docs)
    original = earliest_root(docs)
    pairs: dict[tuple[str, str], UserPair] = {}

    def edge(parent: Document, child: Document, depth: int) -> None:
        key = normalize_pair(parent.author_id, child.author_id)
        pair = pairs.get(key)
        if pair is None:
            pair = pairs[key] = UserPair(user_id1=key[0], user_id2=key[1])
        pair.add_edge(parent, child, depth)

    for doc in sorted(docs, key=lambda d: d.created_at):
        if doc.parent_id is not None:
            parent = by_id.get(doc.parent_id)
            if parent is not None and parent.author_id != doc.author_id:
                edge(parent, doc, reply_depth(doc.id, by_id))
        elif original is not None and doc.id != original.id:
            if doc.author_id != original.author_id:
                edge(original, doc, 1)

    return list(pairs.values())


async def identify_user_pairs(repository: BaseRepository, topic_id: str) -> list[UserPair]:
    """All user pairs of a topic."""
    docs = await repository.list_topic_documents(topic_id)
    pairs = pairs_from_documents(docs)
    logger.debug("Topic %s: %d user pairs from %d documents", topic_id, len(pairs), len(docs))
    return pairs


def pair_documents(docs: list[Document], user_id1: str, user_id2: str) -> list[Document]:
    """Documents of the two users that take part in a direct exchange between them."""
    users = {user_id1, user_id2}
    by_id = index_documents(docs)
    original = earliest_root(docs)
    picked: dict[str, Document] = {}

    def crosses(a: Document, b: Document) -> bool:
        return {a.author_id, b.author_id} == users and a.author_id != b.author_id

    for doc in sorted(docs, key=lambda d: d.created_at):
        if doc.author_id not in users:
            continue
        if doc.parent_id is not None:
            parent = by_id.get(doc.parent_id)
            if parent is not None and crosses(parent, doc):
                picked.setdefault(parent.id, parent)
                picked.setdefault(doc.id, doc)
        elif original is not None and doc.id != original.id and crosses(original, doc):
            picked.setdefault(original.id, original)
            picked.setdefault(doc.id, doc)

    return sorted(picked.values(), key=lambda d: d.created_at)


async def get_user_pair_documents(
    repository: BaseRepository, topic_id: str, user_id1: str, user_id2: str
) -> list[Document]:
    docs = await repository.list_topic_documents(topic_id)
    return pair_documents(docs, user_id1, user_id2)
