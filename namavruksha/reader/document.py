"""Paged-document capability used by reading sessions, plus a PyMuPDF adapter."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Protocol, Sequence, Tuple

import fitz  # type: ignore

from ..errors import ParseError


@dataclass
class TextFragment:
    """A positioned run of text on a page (top-left origin)."""

    text: str
    x: float
    y: float
    height: float = 0.0


@dataclass
class RawOutlineItem:
    """Embedded outline node before its destination is resolved to a page."""

    title: str
    dest: Any = None
    children: List["RawOutlineItem"] = field(default_factory=list)


class PagedDocument(Protocol):
    page_count: int

    async def get_page_size(self, index: int) -> Tuple[float, float]: ...

    async def get_page_text(self, index: int) -> str: ...

    async def get_text_fragments(self, index: int) -> List[TextFragment]: ...

    async def get_outline(self) -> List[RawOutlineItem]: ...

    async def get_destination(self, name: str) -> Optional[Sequence[Any]]: ...

    async def get_page_index(self, ref: Any) -> int: ...

    def close(self) -> None: ...


class FitzDocument:
    """``PagedDocument`` backed by an in-memory PyMuPDF document."""

    def __init__(self, doc: "fitz.Document") -> None:
        self._doc = doc
        self.page_count = len(doc)

    @classmethod
    def from_bytes(cls, data: bytes) -> "FitzDocument":
        if not data:
            raise ParseError("Failed to render PDF: empty document")
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:  # PyMuPDF raises several unrelated types for bad input
            raise ParseError(f"Failed to render PDF: {exc}") from exc
        if len(doc) == 0:
            doc.close()
            raise ParseError("Failed to render PDF: document has no pages")
        return cls(doc)

    async def get_page_size(self, index: int) -> Tuple[float, float]:
        rect = self._doc.load_page(index).rect
        return float(rect.width), float(rect.height)

    async def get_page_text(self, index: int) -> str:
        """Runs inline on the event loop; a ``fitz.Document`` must not be shared across threads."""

        return self._doc.load_page(index).get_text("text")

    async def get_text_fragments(self, index: int) -> List[TextFragment]:
        """Span boxes from ``get_text("dict")``, extracted inline like ``get_page_text``."""

        page_dict = self._doc.load_page(index).get_text("dict")
        fragments: List[TextFragment] = []
        for block in page_dict.get("blocks", []):
            for line in block.get("lines", []):
                for span in line.get("spans", []):
                    content = span.get("text", "")
                    if not content.strip():
                        continue
                    x0, y0, _x1, y1 = span.get("bbox", (0.0, 0.0, 0.0, 0.0))
                    fragments.append(TextFragment(text=content, x=float(x0), y=float(y0), height=float(y1 - y0)))
        return fragments

    async def get_outline(self) -> List[RawOutlineItem]:
        roots: List[RawOutlineItem] = []
        stack: List[Tuple[int, RawOutlineItem]] = []
        for row in self._doc.get_toc(simple=False):
            level, title, page = row[0], row[1], row[2]
            details = row[3] if len(row) > 3 and isinstance(row[3], dict) else {}
            if page and page > 0:
                dest: Any = page - 1
            else:
                dest = details.get("nameddest") or details.get("name")
            item = RawOutlineItem(title=str(title), dest=dest)
            while stack and stack[-1][0] >= level:
                stack.pop()
            if stack:
                stack[-1][1].children.append(item)
            else:
                roots.append(item)
            stack.append((level, item))
        return roots

    async def get_destination(self, name: str) -> Optional[Sequence[Any]]:
        resolved = self._doc.resolve_names().get(name)
        if not resolved:
            return None
        page = resolved.get("page")
        return [page] if isinstance(page, int) and page >= 0 else None

    async def get_page_index(self, ref: Any) -> int:
        if isinstance(ref, int) and not isinstance(ref, bool) and 0 <= ref < self.page_count:
            return ref
        raise ValueError(f"Unresolvable page reference: {ref!r}")

    def close(self) -> None:
        self._doc.close()


def load_document(data: bytes) -> FitzDocument:
    return FitzDocument.from_bytes(data)
