"""Typed records for documents fetched from the hosted document store.

Raw documents arrive as loosely typed mappings (``$id``, ISO date strings,
integers that may be missing or stored as text). Every record here exposes a
``from_document`` constructor that coerces at the boundary so aggregation code
only ever sees the closed data model below.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional

SOURCE_MANUAL = "manual"
SOURCE_AUDIO = "audio"
SOURCE_TYPES = (SOURCE_MANUAL, SOURCE_AUDIO)


def coerce_int(value: Any) -> Optional[int]:
    """Return ``value`` as an int, or ``None`` when it is not numeric."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                return None
            return int(number) if math.isfinite(number) else None
    return None


def coerce_count(value: Any) -> int:
    number = coerce_int(value)
    if number is None or number < 0:
        return 0
    return number


def parse_day(value: Any) -> Optional[date]:
    """Calendar day from a date, datetime or ISO string (time of day dropped)."""

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


def _document_id(doc: Mapping[str, Any]) -> Optional[str]:
    raw = doc.get("$id", doc.get("id"))
    return str(raw) if raw is not None else None


@dataclass(frozen=True)
class CountEntry:
    """One devotional submission against an account."""

    user_id: Optional[str]
    account_id: Optional[str]
    count: int
    entry_date: Optional[date]
    source_type: str = SOURCE_MANUAL
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    devotee_count: Optional[int] = None
    created_at: Optional[datetime] = None
    id: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "CountEntry":
        source = str(doc.get("source_type") or SOURCE_MANUAL).lower()
        user_id = doc.get("user_id")
        account_id = doc.get("account_id")
        return cls(
            user_id=str(user_id) if user_id is not None else None,
            account_id=str(account_id) if account_id is not None else None,
            count=coerce_count(doc.get("count")),
            entry_date=parse_day(doc.get("entry_date")),
            source_type=source if source in SOURCE_TYPES else SOURCE_MANUAL,
            start_date=parse_day(doc.get("start_date")),
            end_date=parse_day(doc.get("end_date")),
            devotee_count=coerce_int(doc.get("devotee_count")),
            created_at=parse_timestamp(doc.get("created_at")),
            id=_document_id(doc),
        )


@dataclass
class StatsBucket:
    today: int = 0
    current_week: int = 0
    current_month: int = 0
    current_year: int = 0
    previous_year: int = 0
    overall: int = 0

    @property
    def this_week(self) -> int:
        return self.current_week

    @property
    def this_month(self) -> int:
        return self.current_month

    @property
    def this_year(self) -> int:
        return self.current_year

    def to_dict(self) -> Dict[str, int]:
        return {
            "today": self.today,
            "currentWeek": self.current_week,
            "currentMonth": self.current_month,
            "currentYear": self.current_year,
            "previousYear": self.previous_year,
            "overall": self.overall,
        }


@dataclass(frozen=True)
class Account:
    """A Sankalpa: a named campaign that counts are logged against."""

    id: str
    name: str
    is_active: bool = True
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    target_goal: Optional[int] = None

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "Account":
        goal = coerce_int(doc.get("target_goal"))
        return cls(
            id=_document_id(doc) or "",
            name=str(doc.get("name") or ""),
            is_active=bool(doc.get("is_active", True)),
            start_date=parse_day(doc.get("start_date")),
            end_date=parse_day(doc.get("end_date")),
            target_goal=goal if goal and goal > 0 else None,
        )


@dataclass(frozen=True)
class User:
    id: str
    name: str
    city: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "User":
        city = str(doc.get("city") or "").strip()
        return cls(
            id=_document_id(doc) or "",
            name=str(doc.get("name") or ""),
            city=city or None,
            created_at=parse_timestamp(doc.get("created_at")),
        )
