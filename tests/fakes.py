"""Scripted stand-ins for the paged-document capability."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Tuple

from namavruksha.reader.document import RawOutlineItem, TextFragment


class FakeDocument:
    def __init__(
        self,
        pages: Sequence[str],
        *,
        fragments: Optional[Dict[int, List[TextFragment]]] = None,
        outline: Any = None,
        destinations: Optional[Dict[str, list]] = None,
        failing_pages: Sequence[int] = (),
        size: Tuple[float, float] = (550.0, 733.0),
        delay: float = 0.0,
    ) -> None:
        self.pages = list(pages)
        self.page_count = len(self.pages)
        self.fragments = fragments or {}
        self.outline = outline
        self.destinations = destinations or {}
        self.failing_pages = set(failing_pages)
        self.size = size
        self.delay = delay
        self.gate: Optional[asyncio.Event] = None
        self.text_calls: List[int] = []
        self.text_log: List[Tuple[str, int]] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self.closed = False

    async def get_page_size(self, index: int) -> Tuple[float, float]:
        if not 0 <= index < self.page_count:
            raise IndexError(index)
        return self.size

    async def get_page_text(self, index: int) -> str:
        self.text_calls.append(index)
        self.text_log.append(("start", index))
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            gate = self.gate
            if gate is not None:
                await gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
            self.text_log.append(("end", index))
        if index in self.failing_pages:
            raise RuntimeError(f"text layer broken on page {index}")
        return self.pages[index]

    async def get_text_fragments(self, index: int) -> List[TextFragment]:
        if index in self.fragments:
            return self.fragments[index]
        return [TextFragment(text=self.pages[index], x=72.0, y=72.0, height=11.0)]

    async def get_outline(self) -> List[RawOutlineItem]:
        if isinstance(self.outline, Exception):
            raise self.outline
        return list(self.outline or [])

    async def get_destination(self, name: str):
        return self.destinations.get(name)

    async def get_page_index(self, ref: Any) -> int:
        if isinstance(ref, int) and 0 <= ref < self.page_count:
            return ref
        raise ValueError(f"bad ref {ref!r}")

    def close(self) -> None:
        self.closed = True


def toc_fragments(lines: Sequence[str], *, top: float = 100.0, step: float = 20.0) -> List[TextFragment]:
    """Split each ``"title N"`` line into a left title fragment and a right-aligned number."""

    fragments: List[TextFragment] = []
    for offset, line in enumerate(lines):
        y = top + offset * step
        head, _, tail = line.rpartition(" ")
        if head and tail.isdigit():
            fragments.append(TextFragment(text=tail, x=500.0, y=y, height=11.0))
            fragments.append(TextFragment(text=head, x=72.0, y=y + 0.5, height=11.0))
        else:
            fragments.append(TextFragment(text=line, x=72.0, y=y, height=11.0))
    return fragments


def fetch_bytes(payload: bytes = b"%PDF-fake"):
    async def fetch(_document_id: str) -> bytes:
        return payload

    return fetch
