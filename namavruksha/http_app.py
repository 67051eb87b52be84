"""FastAPI wrapper exposing the aggregator and outline derivation."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, File, HTTPException, UploadFile
from pydantic import BaseModel, Field

from .config import Config
from .errors import ReaderError
from .reader.session import ReadingSession
from .stats import (
    account_stats,
    compute_devotee_adjusted_total,
    compute_stats,
    daily_totals,
    source_breakdown,
    sum_by_date_range,
    weekly_totals,
)
from .storage import MemoryStore

app = FastAPI(title="Namavruksha")
config = Config.from_sources()


class StatsRequest(BaseModel):
    entries: List[Dict[str, Any]] = Field(default_factory=list)
    now: date


class RangeRequest(BaseModel):
    entries: List[Dict[str, Any]] = Field(default_factory=list)
    start: date
    end: date


class AccountStatsRequest(BaseModel):
    accounts: List[Dict[str, Any]] = Field(default_factory=list)
    entries: List[Dict[str, Any]] = Field(default_factory=list)
    now: date


class TrendRequest(BaseModel):
    entries: List[Dict[str, Any]] = Field(default_factory=list)
    end: date
    days: int = Field(default=7, ge=1, le=366)
    weeks: int = Field(default=4, ge=1, le=104)


@app.post("/stats")
async def stats_endpoint(request: StatsRequest) -> Dict[str, Any]:
    return {
        "stats": compute_stats(request.entries, request.now).to_dict(),
        "devotees": compute_devotee_adjusted_total(request.entries),
    }


@app.post("/stats/range")
async def range_endpoint(request: RangeRequest) -> Dict[str, Any]:
    return {"total": sum_by_date_range(request.entries, request.start, request.end)}


@app.post("/stats/accounts")
async def accounts_endpoint(request: AccountStatsRequest) -> List[Dict[str, Any]]:
    return [row.to_dict() for row in account_stats(request.accounts, request.entries, request.now)]


@app.post("/stats/trends")
async def trends_endpoint(request: TrendRequest) -> Dict[str, Any]:
    return {
        "daily": [{"date": day.isoformat(), "total": total} for day, total in daily_totals(request.entries, request.end, request.days)],
        "weekly": [
            {"start": start.isoformat(), "end": end.isoformat(), "total": total}
            for (start, end), total in weekly_totals(request.entries, request.end, request.weeks)
        ],
        "sources": source_breakdown(request.entries),
    }


@app.post("/outline")
async def outline_endpoint(pdf: UploadFile = File(...), document_id: Optional[str] = None) -> Dict[str, Any]:
    data = await pdf.read()

    async def uploaded(_document_id: str) -> bytes:
        return data

    doc_id = document_id or pdf.filename or "upload"
    try:
        session = await ReadingSession.open(doc_id, uploaded, store=MemoryStore(), config=config.reader)
    except ReaderError as exc:
        raise HTTPException(status_code=422, detail={"reason": exc.reason, "error": str(exc)}) from exc
    try:
        outline = await session.derive_outline()
        return {
            "document_id": doc_id,
            "pages": session.page_count,
            "page_size": list(session.page_size),
            "outline": [entry.to_dict() for entry in outline],
        }
    finally:
        session.close()
