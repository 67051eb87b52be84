"""Table-of-contents derivation as an ordered chain of strategies.

Each strategy takes a ``PagedDocument`` and returns a list of ``OutlineEntry``
or ``None`` when it has nothing to offer. ``derive_outline`` tries them in
order; a strategy that raises is logged and skipped, so the chain always ends
at the per-page fallback.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence

from ..config import ReaderConfig
from ..logging_utils import log_event
from .document import PagedDocument, RawOutlineItem, TextFragment

logger = logging.getLogger(__name__)

TOC_LINE_RE = re.compile(r"^(?P<title>.*?\S)(?:\s*[.·…_\-]{2,}\s*|\s+)(?P<page>\d{1,3})$")
NUMERIC_RE = re.compile(r"^[\d\s.,:;\-–—]+$")


@dataclass(frozen=True)
class OutlineEntry:
    title: str
    page: int

    def to_dict(self) -> dict:
        return {"title": self.title, "page": self.page}


OutlineStrategy = Callable[[PagedDocument, ReaderConfig], Awaitable[Optional[List[OutlineEntry]]]]


def flatten_outline(items: Iterable[RawOutlineItem]) -> List[RawOutlineItem]:
    """Depth-first, parent before children."""

    flat: List[RawOutlineItem] = []
    for item in items:
        flat.append(item)
        if item.children:
            flat.extend(flatten_outline(item.children))
    return flat


async def _resolve_page(document: PagedDocument, dest) -> int:
    if dest is None:
        return 0
    if isinstance(dest, str):
        explicit = await document.get_destination(dest)
        if not explicit:
            raise ValueError(f"Unknown named destination {dest!r}")
    elif isinstance(dest, (list, tuple)):
        explicit = dest
    else:
        explicit = [dest]
    return await document.get_page_index(explicit[0])


async def embedded_outline(document: PagedDocument, config: ReaderConfig) -> Optional[List[OutlineEntry]]:
    """Outline stored in the document, destinations resolved one at a time."""

    entries: List[OutlineEntry] = []
    for item in flatten_outline(await document.get_outline()):
        try:
            page = await _resolve_page(document, item.dest)
        except Exception as exc:  # a single bad destination only drops its own entry
            logger.warning("Could not resolve TOC item %r: %s", item.title, exc)
            continue
        entries.append(OutlineEntry(title=item.title, page=page))
    return entries or None


def group_lines(fragments: Sequence[TextFragment], tolerance: float = 6.0) -> List[str]:
    """Join fragments sharing a baseline band into lines, top to bottom."""

    ordered = sorted(fragments, key=lambda frag: (frag.y, frag.x))
    rows: List[List[TextFragment]] = []
    for fragment in ordered:
        if rows:
            anchor = rows[-1][0]
            tol = max(tolerance, anchor.height * 0.6)
            if abs(fragment.y - anchor.y) <= tol:
                rows[-1].append(fragment)
                continue
        rows.append([fragment])

    lines: List[str] = []
    for row in rows:
        row.sort(key=lambda frag: frag.x)
        text = " ".join(frag.text.strip() for frag in row if frag.text.strip())
        text = re.sub(r"\s+", " ", text).strip()
        if text:
            lines.append(text)
    return lines


def parse_toc_line(line: str, total_pages: int) -> Optional[OutlineEntry]:
    """``"Chapter One 5"`` → ``OutlineEntry("Chapter One", 4)``; ``None`` otherwise."""

    match = TOC_LINE_RE.match(line.strip())
    if not match:
        return None
    title = match.group("title").strip().rstrip(".·…_-").strip()
    number = int(match.group("page"))
    if not title or NUMERIC_RE.match(title):
        return None
    if number < 1 or number > total_pages:
        return None
    return OutlineEntry(title=title, page=number - 1)


def detect_toc_entries(lines: Sequence[str], total_pages: int, min_lines: int = 3) -> Optional[List[OutlineEntry]]:
    entries = [entry for entry in (parse_toc_line(line, total_pages) for line in lines) if entry is not None]
    return entries if len(entries) >= min_lines else None


async def scanned_toc(document: PagedDocument, config: ReaderConfig) -> Optional[List[OutlineEntry]]:
    """First page among the leading pages whose lines look like a contents listing."""

    limit = min(document.page_count, config.toc_scan_pages)
    for index in range(limit):
        fragments = await document.get_text_fragments(index)
        lines = group_lines(fragments, config.line_tolerance)
        entries = detect_toc_entries(lines, document.page_count, config.toc_min_lines)
        if entries:
            log_event("toc_page_detected", page=index, entries=len(entries))
            return entries
    return None


def _page_entries(page_count: int) -> List[OutlineEntry]:
    return [OutlineEntry(title=f"Page {index + 1}", page=index) for index in range(page_count)]


async def page_list(document: PagedDocument, config: ReaderConfig) -> Optional[List[OutlineEntry]]:
    return _page_entries(document.page_count)


DEFAULT_STRATEGIES: Sequence[OutlineStrategy] = (embedded_outline, scanned_toc, page_list)


async def derive_outline(
    document: PagedDocument,
    config: Optional[ReaderConfig] = None,
    strategies: Sequence[OutlineStrategy] = DEFAULT_STRATEGIES,
) -> List[OutlineEntry]:
    config = config or ReaderConfig()
    for strategy in strategies:
        try:
            entries = await strategy(document, config)
        except Exception as exc:  # outline is best effort; fall through to the next tier
            log_event("outline_strategy_failed", level=logging.WARNING, strategy=getattr(strategy, "__name__", repr(strategy)), error=str(exc))
            continue
        if entries:
            return list(entries)
    return _page_entries(document.page_count)
