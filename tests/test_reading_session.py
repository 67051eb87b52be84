from __future__ import annotations

import asyncio

import pytest

from namavruksha.config import ReaderConfig
from namavruksha.errors import FetchError, ParseError, SessionStateError
from namavruksha.reader.session import ReadingSession, SessionState, bookmarks_key, last_page_key
from namavruksha.storage import LocalStore, MemoryStore
from tests.fakes import FakeDocument, fetch_bytes

PAGES = ["Om namo", "Alpha verse", "plain", "plain", "plain", "ALPHA again", "plain", "closing alpha"]


def open_session(doc: FakeDocument, store, **kwargs) -> ReadingSession:
    return asyncio.run(ReadingSession.open("book-1", fetch_bytes(), store=store, loader=lambda _blob: doc, **kwargs))


def test_open_seeds_defaults(store):
    doc = FakeDocument(PAGES)
    session = open_session(doc, store)
    assert session.state is SessionState.READY
    assert session.page_count == len(PAGES)
    assert session.page_size == (550.0, 733.0)
    assert session.current_page == 0
    assert session.bookmarks == []
    assert session.scale == 1.0


def test_open_restores_persisted_page_and_bookmarks(store):
    store.set(last_page_key("book-1"), 3)
    store.set(bookmarks_key("book-1"), [5, 1, 5, 99, "2", None])
    session = open_session(FakeDocument(PAGES), store)
    assert session.current_page == 3
    assert session.bookmarks == [1, 2, 5]


def test_out_of_range_last_page_resets_to_first(store):
    store.set(last_page_key("book-1"), 42)
    assert open_session(FakeDocument(PAGES), store).current_page == 0


def test_fetch_failure_is_terminal():
    async def failing_fetch(_document_id: str) -> bytes:
        raise ConnectionError("offline")

    session = ReadingSession("book-1", MemoryStore())
    with pytest.raises(FetchError) as excinfo:
        asyncio.run(session.load(failing_fetch, lambda _blob: FakeDocument(PAGES)))
    assert excinfo.value.reason == "fetch_failed"
    assert session.state is SessionState.ERROR
    assert session.error is excinfo.value
    with pytest.raises(SessionStateError):
        session.jump_to_page(1)


def test_parse_failure_is_terminal():
    def bad_loader(_blob: bytes):
        raise ValueError("not a pdf")

    with pytest.raises(ParseError) as excinfo:
        asyncio.run(ReadingSession.open("book-1", fetch_bytes(), store=MemoryStore(), loader=bad_loader))
    assert excinfo.value.reason == "parse_failed"
    assert excinfo.value.document_id == "book-1"


def test_jump_to_page_bounds_and_persistence(store):
    session = open_session(FakeDocument(PAGES), store)
    assert session.jump_to_page(4) is True
    assert store.get(last_page_key("book-1")) == 4
    assert session.jump_to_page(len(PAGES)) is False
    assert session.jump_to_page(-1) is False
    assert session.current_page == 4


def test_flip_and_goto_navigation(store):
    session = open_session(FakeDocument(PAGES), store)
    assert session.flip_prev() is False
    assert session.flip_next() is True
    assert session.current_page == 1
    assert session.last_page() is True
    assert session.current_page == len(PAGES) - 1
    assert session.flip_next() is False
    assert session.go_to_page_number("3") is True
    assert session.current_page == 2
    assert session.go_to_page_number("abc") is False
    assert session.first_page() is True
    assert session.current_page == 0


def test_toggle_bookmark_twice_restores_previous_set(store):
    session = open_session(FakeDocument(PAGES), store)
    for page in (6, 2):
        session.jump_to_page(page)
        session.toggle_bookmark()
    assert session.bookmarks == [2, 6]
    session.jump_to_page(4)
    before = list(session.bookmarks)
    assert session.toggle_bookmark() is True
    assert session.bookmarks == [2, 4, 6]
    assert session.is_bookmarked
    assert session.toggle_bookmark() is False
    assert session.bookmarks == before
    assert store.get(bookmarks_key("book-1")) == before


def test_state_survives_reopen(tmp_path):
    path = tmp_path / "store.json"
    first = open_session(FakeDocument(PAGES), LocalStore(path))
    first.jump_to_page(5)
    first.toggle_bookmark()
    first.set_zoom(2.0)
    first.close()

    second = open_session(FakeDocument(PAGES), LocalStore(path))
    assert second.current_page == 5
    assert second.bookmarks == [5]
    assert second.scale == 1.0


def test_set_zoom_clamps(store):
    session = open_session(FakeDocument(PAGES), store, config=ReaderConfig())
    assert session.set_zoom(10) == 3.0
    assert session.set_zoom(0.01) == 0.2
    assert session.set_zoom(1.5) == 1.5


def test_search_is_case_insensitive_and_jumps_to_first_match(store):
    session = open_session(FakeDocument(PAGES), store)
    matches = asyncio.run(session.search("alpha"))
    assert matches == [1, 5, 7]
    assert session.search_matches == [1, 5, 7]
    assert session.current_match == 0
    assert session.current_page == 1


def test_search_reads_pages_in_waves(store):
    doc = FakeDocument([f"page {n}" for n in range(12)], delay=0.01)
    session = open_session(doc, store, config=ReaderConfig(search_batch_size=5))
    assert asyncio.run(session.search("page 11")) == [11]
    assert sorted(doc.text_calls) == list(range(12))
    assert doc.peak_in_flight == 5

    waves = [range(0, 5), range(5, 10), range(10, 12)]
    for previous, following in zip(waves, waves[1:]):
        last_end = max(pos for pos, (kind, index) in enumerate(doc.text_log) if kind == "end" and index in previous)
        first_start = min(pos for pos, (kind, index) in enumerate(doc.text_log) if kind == "start" and index in following)
        assert last_end < first_start


def test_search_skips_pages_whose_text_fails(store):
    doc = FakeDocument(PAGES, failing_pages=[5])
    session = open_session(doc, store)
    assert asyncio.run(session.search("alpha")) == [1, 7]


def test_blank_search_clears_results_without_moving(store):
    session = open_session(FakeDocument(PAGES), store)
    asyncio.run(session.search("alpha"))
    session.jump_to_page(3)
    assert asyncio.run(session.search("")) == []
    assert session.search_matches == []
    assert session.current_page == 3
    asyncio.run(session.search("alpha"))
    session.jump_to_page(3)
    assert asyncio.run(session.search("   ")) == []
    assert session.search_matches == []
    assert session.current_match == -1
    assert session.current_page == 3


def test_next_match_cycles(store):
    session = open_session(FakeDocument(PAGES), store)
    assert session.next_match() is None
    asyncio.run(session.search("alpha"))
    assert [session.next_match() for _ in range(4)] == [5, 7, 1, 5]
    assert session.current_page == 5


def test_navigation_during_search_wins_over_stale_results(store):
    doc = FakeDocument(PAGES)
    session = open_session(doc, store)

    async def scenario():
        doc.gate = asyncio.Event()
        task = asyncio.create_task(session.search("alpha"))
        await asyncio.sleep(0)
        session.jump_to_page(3)
        doc.gate.set()
        return await task

    assert asyncio.run(scenario()) == []
    assert session.current_page == 3
    assert session.search_matches == []
    assert store.get(last_page_key("book-1")) == 3


def test_newer_search_supersedes_older_one(store):
    doc = FakeDocument(PAGES)
    session = open_session(doc, store)

    async def scenario():
        slow_gate = asyncio.Event()
        doc.gate = slow_gate
        older = asyncio.create_task(session.search("plain"))
        await asyncio.sleep(0)
        doc.gate = None
        newer = await session.search("closing")
        slow_gate.set()
        return await older, newer

    older, newer = asyncio.run(scenario())
    assert older == []
    assert newer == [7]
    assert session.search_query == "closing"
    assert session.search_matches == [7]
    assert session.current_page == 7


def test_derive_outline_on_session(store):
    session = open_session(FakeDocument(["a", "b"]), store)
    outline = asyncio.run(session.derive_outline())
    assert [entry.title for entry in outline] == ["Page 1", "Page 2"]
    assert session.outline == outline


def test_close_releases_document(store):
    doc = FakeDocument(PAGES)
    session = open_session(doc, store)
    session.close()
    assert doc.closed
    assert session.state is SessionState.CLOSED
    assert session.document is None
    with pytest.raises(SessionStateError):
        session.toggle_bookmark()
    session.close()
