# src/core/errors.py — v1
"""Lookup errors raised by stage and chat jobs for missing records.

These are terminal for the job that raises them: retrying cannot make a
deleted document, room or message reappear.
"""

from __future__ import annotations


class RecordNotFoundError(LookupError):
    """Base class for missing-record errors."""

    kind = "record"

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"{self.kind.capitalize()} {record_id} not found")


class DocumentNotFoundError(RecordNotFoundError):
    kind = "document"


class RoomNotFoundError(RecordNotFoundError):
    kind = "room"


class MessageNotFoundError(RecordNotFoundError):
    kind = "message"
