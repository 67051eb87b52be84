"""Exceptions surfaced to callers of the reading session and actor session."""
from __future__ import annotations


class ReaderError(RuntimeError):
    """Terminal failure of a reading session; ``reason`` is stable for callers."""

    reason = "reader_error"

    def __init__(self, message: str, *, document_id: str | None = None) -> None:
        super().__init__(message)
        self.document_id = document_id


class FetchError(ReaderError):
    reason = "fetch_failed"

    def __init__(self, message: str, *, document_id: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message, document_id=document_id)
        self.status_code = status_code


class ParseError(ReaderError):
    reason = "parse_failed"


class SessionStateError(RuntimeError):
    """Raised when an operation is attempted outside the ``Ready`` state."""


class PermissionDenied(RuntimeError):
    pass
