"""Reading session over a paginated document (the flipbook reader's state).

Lifecycle::

    Loading --fetch+parse ok--> Ready --close()--> Closed
       \\--fetch or parse fails--> Error

Only the last viewed page and the bookmark list survive across sessions; they
are written through to the client-local store on every change. Zoom resets on
every open.

Every navigation and every new search bumps ``generation``. A search captures
the generation it started under and only applies its matches (and its jump to
the first match) if nothing else happened in between.
"""
from __future__ import annotations

import asyncio
import bisect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from ..config import ReaderConfig
from ..errors import FetchError, ParseError, ReaderError, SessionStateError
from ..logging_utils import log_event
from ..models import coerce_int
from .document import PagedDocument, load_document
from .outline import OutlineEntry, OutlineStrategy, DEFAULT_STRATEGIES, derive_outline

logger = logging.getLogger(__name__)

BlobFetcher = Callable[[str], Awaitable[bytes]]
DocumentLoader = Callable[[bytes], PagedDocument]


class SessionState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"
    CLOSED = "closed"


def last_page_key(document_id: str) -> str:
    return f"lastPage_{document_id}"


def bookmarks_key(document_id: str) -> str:
    return f"bookmarks_{document_id}"


class ReadingSession:
    def __init__(self, document_id: str, store: Any, config: Optional[ReaderConfig] = None) -> None:
        self.document_id = document_id
        self.store = store
        self.config = config or ReaderConfig()
        self.state = SessionState.LOADING
        self.error: Optional[ReaderError] = None
        self.document: Optional[PagedDocument] = None
        self.page_count = 0
        self.page_size: Tuple[float, float] = (0.0, 0.0)
        self.current_page = 0
        self.scale = 1.0
        self.outline: List[OutlineEntry] = []
        self.bookmarks: List[int] = []
        self.search_query = ""
        self.search_matches: List[int] = []
        self.current_match = -1
        self.generation = 0
        self._blob: Optional[bytes] = None

    @classmethod
    async def open(
        cls,
        document_id: str,
        fetch: BlobFetcher,
        *,
        store: Any,
        loader: DocumentLoader = load_document,
        config: Optional[ReaderConfig] = None,
    ) -> "ReadingSession":
        """Fetch, parse and seed a session; raises ``FetchError`` or ``ParseError``."""

        session = cls(document_id, store, config)
        await session.load(fetch, loader)
        return session

    async def load(self, fetch: BlobFetcher, loader: DocumentLoader = load_document) -> None:
        if self.state is not SessionState.LOADING:
            raise SessionStateError(f"Cannot load a session in state {self.state.value}")
        log_event("session_open_started", document_id=self.document_id)
        try:
            try:
                blob = await fetch(self.document_id)
            except ReaderError:
                raise
            except Exception as exc:
                raise FetchError(f"Failed to load PDF file: {exc}", document_id=self.document_id) from exc
            document: Optional[PagedDocument] = None
            try:
                document = loader(blob)
                page_size = await document.get_page_size(0)
            except Exception as exc:
                if document is not None:
                    document.close()
                if isinstance(exc, ReaderError):
                    raise
                raise ParseError(f"Failed to render PDF: {exc}", document_id=self.document_id) from exc
        except ReaderError as exc:
            exc.document_id = exc.document_id or self.document_id
            self.state = SessionState.ERROR
            self.error = exc
            log_event("session_failed", level=logging.ERROR, document_id=self.document_id, reason=exc.reason, error=str(exc))
            raise

        self._blob = blob
        self.document = document
        self.page_count = document.page_count
        self.page_size = page_size
        self._restore()
        self.state = SessionState.READY
        log_event(
            "session_ready",
            document_id=self.document_id,
            pages=self.page_count,
            page=self.current_page,
            bookmarks=len(self.bookmarks),
        )

    def _restore(self) -> None:
        last = coerce_int(self.store.get(last_page_key(self.document_id)))
        self.current_page = last if last is not None and 0 <= last < self.page_count else 0
        raw = self.store.get(bookmarks_key(self.document_id)) or []
        pages = {coerce_int(value) for value in raw} if isinstance(raw, list) else set()
        self.bookmarks = sorted(page for page in pages if page is not None and 0 <= page < self.page_count)

    def _require_ready(self) -> None:
        if self.state is not SessionState.READY:
            raise SessionStateError(f"Session for {self.document_id} is {self.state.value}")

    # navigation

    def _go(self, index: int) -> None:
        self.current_page = index
        self.store.set(last_page_key(self.document_id), index)

    def jump_to_page(self, index: int) -> bool:
        """Move to ``index``; out-of-range targets are ignored and return ``False``."""

        self._require_ready()
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < self.page_count:
            return False
        self.generation += 1
        self._go(index)
        return True

    def flip_next(self) -> bool:
        return self.jump_to_page(self.current_page + 1)

    def flip_prev(self) -> bool:
        return self.jump_to_page(self.current_page - 1)

    def first_page(self) -> bool:
        return self.jump_to_page(0)

    def last_page(self) -> bool:
        return self.jump_to_page(self.page_count - 1)

    def go_to_page_number(self, number: Any) -> bool:
        """1-based page input as typed by a reader."""

        page = coerce_int(number)
        if page is None:
            return False
        return self.jump_to_page(page - 1)

    # bookmarks

    @property
    def is_bookmarked(self) -> bool:
        return self.current_page in self.bookmarks

    def toggle_bookmark(self) -> bool:
        """Flip the bookmark on the current page; returns whether it is now bookmarked."""

        self._require_ready()
        page = self.current_page
        position = bisect.bisect_left(self.bookmarks, page)
        if position < len(self.bookmarks) and self.bookmarks[position] == page:
            del self.bookmarks[position]
            added = False
        else:
            self.bookmarks.insert(position, page)
            added = True
        self.store.set(bookmarks_key(self.document_id), list(self.bookmarks))
        return added

    # zoom

    def set_zoom(self, scale: float) -> float:
        self._require_ready()
        self.scale = min(self.config.zoom_max, max(self.config.zoom_min, float(scale)))
        return self.scale

    # outline

    async def derive_outline(self, strategies: Optional[List[OutlineStrategy]] = None) -> List[OutlineEntry]:
        self._require_ready()
        assert self.document is not None
        self.outline = await derive_outline(self.document, self.config, strategies or DEFAULT_STRATEGIES)
        return self.outline

    # search

    async def _page_text(self, index: int) -> str:
        assert self.document is not None
        return await self.document.get_page_text(index)

    def _is_current(self, generation: int) -> bool:
        return self.state is SessionState.READY and generation == self.generation

    async def search(self, query: str) -> List[int]:
        """Pages whose text contains ``query`` (case-insensitive), ascending.

        A blank query clears previous results without moving. When the search
        is overtaken by navigation, another search or ``close`` before it
        finishes, nothing is applied and an empty list is returned.
        """

        self._require_ready()
        self.generation += 1
        generation = self.generation
        query = (query or "").strip()
        if not query:
            self.search_query = ""
            self.search_matches = []
            self.current_match = -1
            return []

        needle = query.lower()
        matches: List[int] = []
        batch_size = self.config.search_batch_size
        for start in range(0, self.page_count, batch_size):
            batch = range(start, min(start + batch_size, self.page_count))
            results = await asyncio.gather(*(self._page_text(index) for index in batch), return_exceptions=True)
            if not self._is_current(generation):
                log_event("search_discarded", document_id=self.document_id, query=query, at_page=start)
                return []
            for index, result in zip(batch, results):
                if isinstance(result, Exception):
                    log_event("search_page_failed", level=logging.WARNING, document_id=self.document_id, page=index, error=str(result))
                    continue
                if isinstance(result, BaseException):
                    raise result
                if needle in (result or "").lower():
                    matches.append(index)

        self.search_query = query
        self.search_matches = matches
        self.current_match = 0 if matches else -1
        if matches:
            self._go(matches[0])
        log_event("search_completed", document_id=self.document_id, query=query, matches=len(matches))
        return list(matches)

    def next_match(self) -> Optional[int]:
        """Advance circularly through the matches and jump there."""

        self._require_ready()
        if not self.search_matches:
            return None
        self.current_match = (self.current_match + 1) % len(self.search_matches)
        page = self.search_matches[self.current_match]
        self.jump_to_page(page)
        return page

    # lifecycle

    def close(self) -> None:
        if self.state is SessionState.CLOSED:
            return
        self.generation += 1
        if self.document is not None:
            try:
                self.document.close()
            except Exception as exc:  # best effort
                logger.warning("Closing document %s failed: %s", self.document_id, exc)
        self.document = None
        self._blob = None
        if self.state is not SessionState.ERROR:
            self.state = SessionState.CLOSED
        log_event("session_closed", document_id=self.document_id)
