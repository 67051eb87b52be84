"""Flipbook reading sessions: navigation, bookmarks, outline and search."""

from .document import FitzDocument, PagedDocument, RawOutlineItem, TextFragment, load_document
from .outline import OutlineEntry, derive_outline
from .session import ReadingSession, SessionState

__all__ = [
    "FitzDocument",
    "OutlineEntry",
    "PagedDocument",
    "RawOutlineItem",
    "ReadingSession",
    "SessionState",
    "TextFragment",
    "derive_outline",
    "load_document",
]
