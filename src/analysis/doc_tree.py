# src/analysis/doc_tree.py — v1
"""Reply-tree helpers over the documents of one topic."""

from __future__ import annotations

from linklore.core.models import Document

MAX_PATH_LENGTH = 20


def index_documents(docs: list[Document]) -> dict[str, Document]:
    return {d.id: d for d in docs}


def earliest_root(docs: list[Document]) -> Document | None:
    """The first-created parentless document: the topic's original post."""
    roots = [d for d in docs if d.parent_id is None]
    return min(roots, key=lambda d: d.created_at) if roots else None


def reply_depth(doc_id: str, by_id: dict[str, Document]) -> int:
    """Number of ancestors of a document (0 for a root)."""
    depth = 0
    seen: set[str] = set()
    current = by_id.get(doc_id)
    while current is not None and current.parent_id is not None:
        if current.id in seen:
            break
        seen.add(current.id)
        depth += 1
        current = by_id.get(current.parent_id)
    return depth


def ancestor_path(
    doc_id: str, by_id: dict[str, Document], limit: int = MAX_PATH_LENGTH
) -> list[str]:
    """Ids from the root down to `doc_id`, at most `limit` long."""
    path: list[str] = []
    current_id: str | None = doc_id
    while current_id is not None and len(path) < limit:
        if current_id in path:
            break
        path.append(current_id)
        current = by_id.get(current_id)
        current_id = current.parent_id if current is not None else None
    path.reverse()
    return path


def merged_branch_path(path1: list[str], path2: list[str]) -> list[str]:
    """Ordered union of two ancestor paths."""
    return list(dict.fromkeys([*path1, *path2]))
