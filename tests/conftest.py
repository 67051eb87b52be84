"""Test configuration ensuring local packages are importable."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

import fitz
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from namavruksha.storage import MemoryStore  # noqa: E402

Placed = Tuple[float, float, str]


def build_pdf(pages: Sequence[Iterable[Placed] | str], toc: List[list] | None = None) -> bytes:
    """Render a small PDF; a page is either plain text or ``(x, baseline_y, text)`` runs."""

    doc = fitz.open()
    for content in pages:
        page = doc.new_page(width=595, height=842)
        runs = [(72.0, 72.0, content)] if isinstance(content, str) else list(content)
        for x, y, text in runs:
            if text:
                page.insert_text((x, y), text, fontsize=11)
    if toc:
        doc.set_toc(toc)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def pdf_factory():
    return build_pdf
