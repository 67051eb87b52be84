"""Date-bucketed aggregation of Nama counts.

All functions are pure: they take already-fetched records and never query the
document store. Raw mappings are accepted anywhere a ``CountEntry`` is and are
coerced through ``CountEntry.from_document``.

Windows (all inclusive calendar days relative to ``now``):
  - today          : now
  - current week   : Monday … Sunday containing now
  - current month  : first … last day of now's month
  - current year   : Jan 1 … Dec 31 of now's year
  - previous year  : Jan 1 … Dec 31 of now's year - 1
  - overall        : no filter
"""
from __future__ import annotations

import calendar
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .models import (
    SOURCE_AUDIO,
    SOURCE_MANUAL,
    Account,
    CountEntry,
    StatsBucket,
    User,
    coerce_count,
    coerce_int,
    parse_day,
)

EntryLike = Union[CountEntry, Mapping[str, Any]]
DateLike = Union[date, datetime, str]
Window = Tuple[date, date]


def as_entries(entries: Iterable[EntryLike]) -> List[CountEntry]:
    return [entry if isinstance(entry, CountEntry) else CountEntry.from_document(entry) for entry in entries]


def _day(value: DateLike) -> date:
    day = parse_day(value)
    if day is None:
        raise ValueError(f"Not a calendar day: {value!r}")
    return day


def week_window(today: date) -> Window:
    monday = today - timedelta(days=today.weekday())
    return monday, monday + timedelta(days=6)


def month_window(today: date) -> Window:
    last = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last)


def year_window(year: int) -> Window:
    return date(year, 1, 1), date(year, 12, 31)


def _in(day: Optional[date], window: Window) -> bool:
    return day is not None and window[0] <= day <= window[1]


def compute_stats(entries: Iterable[EntryLike], now: DateLike) -> StatsBucket:
    """Bucket totals for one owner's entries relative to ``now``."""

    today = _day(now)
    week = week_window(today)
    month = month_window(today)
    year = year_window(today.year)
    previous = year_window(today.year - 1)

    stats = StatsBucket()
    for entry in as_entries(entries):
        count = coerce_count(entry.count)
        stats.overall += count
        day = entry.entry_date
        if day is None:
            continue
        if day == today:
            stats.today += count
        if _in(day, week):
            stats.current_week += count
        if _in(day, month):
            stats.current_month += count
        if _in(day, year):
            stats.current_year += count
        if _in(day, previous):
            stats.previous_year += count
    return stats


def sum_by_date_range(entries: Iterable[EntryLike], start_date: DateLike, end_date: DateLike) -> int:
    """Sum of counts dated within ``[start_date, end_date]``; 0 when the range is inverted."""

    window = (_day(start_date), _day(end_date))
    if window[0] > window[1]:
        return 0
    return sum(coerce_count(entry.count) for entry in as_entries(entries) if _in(entry.entry_date, window))


def devotees_for(entry: CountEntry) -> int:
    # An explicit 0 means "not recorded", same as missing.
    devotees = coerce_int(entry.devotee_count)
    return devotees if devotees is not None and devotees > 0 else 1


def compute_devotee_adjusted_total(entries: Iterable[EntryLike]) -> int:
    return sum(devotees_for(entry) for entry in as_entries(entries))


@dataclass
class UserStats:
    bucket: StatsBucket
    total_devotees: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {**self.bucket.to_dict(), "totalDevotees": self.total_devotees}


def user_stats(entries: Iterable[EntryLike], user_id: Optional[str], now: DateLike) -> UserStats:
    """Dashboard card for one user; entries belonging to other users are ignored."""

    if not user_id:
        return UserStats(bucket=StatsBucket())
    owned = [entry for entry in as_entries(entries) if entry.user_id == user_id]
    raw_devotees = sum(max(0, coerce_int(entry.devotee_count) or 0) for entry in owned)
    return UserStats(bucket=compute_stats(owned, now), total_devotees=raw_devotees)


@dataclass
class AccountStats:
    id: str
    name: str
    bucket: StatsBucket

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, **self.bucket.to_dict()}


def account_stats(
    accounts: Iterable[Union[Account, Mapping[str, Any]]],
    entries: Iterable[EntryLike],
    now: DateLike,
) -> List[AccountStats]:
    """One stats row per active account, in the order the accounts were given."""

    by_account: Dict[Optional[str], List[CountEntry]] = defaultdict(list)
    for entry in as_entries(entries):
        by_account[entry.account_id].append(entry)

    rows: List[AccountStats] = []
    for raw in accounts:
        account = raw if isinstance(raw, Account) else Account.from_document(raw)
        if not account.is_active:
            continue
        rows.append(AccountStats(account.id, account.name, compute_stats(by_account.get(account.id, []), now)))
    return rows


def account_progress(account: Account, entries: Iterable[EntryLike]) -> Optional[float]:
    """Percentage of ``target_goal`` reached by the account, capped at 100."""

    if not account.target_goal:
        return None
    total = sum(coerce_count(entry.count) for entry in as_entries(entries) if entry.account_id == account.id)
    return round(min(100.0, 100.0 * total / account.target_goal), 1)


def daily_totals(entries: Iterable[EntryLike], end: DateLike, days: int = 7) -> List[Tuple[date, int]]:
    """Totals for each of the last ``days`` calendar days ending at ``end``, oldest first."""

    last = _day(end)
    first = last - timedelta(days=max(0, days - 1))
    totals: Dict[date, int] = defaultdict(int)
    for entry in as_entries(entries):
        if _in(entry.entry_date, (first, last)):
            totals[entry.entry_date] += coerce_count(entry.count)  # type: ignore[index]
    return [(first + timedelta(days=offset), totals[first + timedelta(days=offset)]) for offset in range(max(0, days))]


def weekly_totals(entries: Iterable[EntryLike], end: DateLike, weeks: int = 4) -> List[Tuple[Window, int]]:
    """Rolling 7-day windows ``[end-7i-6, end-7i]`` for ``i`` in ``range(weeks)``, oldest first."""

    last = _day(end)
    materialized = as_entries(entries)
    rows: List[Tuple[Window, int]] = []
    for index in reversed(range(max(0, weeks))):
        window = (last - timedelta(days=index * 7 + 6), last - timedelta(days=index * 7))
        rows.append((window, sum_by_date_range(materialized, *window)))
    return rows


def source_breakdown(entries: Iterable[EntryLike]) -> Dict[str, int]:
    totals = {SOURCE_MANUAL: 0, SOURCE_AUDIO: 0}
    for entry in as_entries(entries):
        totals[entry.source_type] = totals.get(entry.source_type, 0) + coerce_count(entry.count)
    return totals


def _users(users: Iterable[Union[User, Mapping[str, Any]]]) -> List[User]:
    return [user if isinstance(user, User) else User.from_document(user) for user in users]


def _totals_by_user(entries: Iterable[EntryLike]) -> Dict[Optional[str], int]:
    totals: Dict[Optional[str], int] = defaultdict(int)
    for entry in as_entries(entries):
        totals[entry.user_id] += coerce_count(entry.count)
    return totals


def top_devotees(
    users: Iterable[Union[User, Mapping[str, Any]]],
    entries: Iterable[EntryLike],
    limit: int = 10,
) -> List[Tuple[User, int]]:
    """Users ranked by their total count; users with nothing logged are dropped."""

    totals = _totals_by_user(entries)
    ranked = [(user, totals.get(user.id, 0)) for user in _users(users)]
    ranked = [row for row in ranked if row[1] > 0]
    ranked.sort(key=lambda row: (-row[1], row[0].name))
    return ranked[: max(0, limit)]


def city_totals(users: Iterable[Union[User, Mapping[str, Any]]], entries: Iterable[EntryLike]) -> Dict[str, int]:
    totals = _totals_by_user(entries)
    cities: Dict[str, int] = defaultdict(int)
    for user in _users(users):
        if user.city:
            cities[user.city] += totals.get(user.id, 0)
    return dict(sorted(cities.items(), key=lambda item: (-item[1], item[0])))


def new_devotees_by_day(users: Iterable[Union[User, Mapping[str, Any]]], end: DateLike, days: int = 7) -> List[Tuple[date, int]]:
    last = _day(end)
    first = last - timedelta(days=max(0, days - 1))
    counts: Dict[date, int] = defaultdict(int)
    for user in _users(users):
        joined = user.created_at.date() if user.created_at else None
        if _in(joined, (first, last)):
            counts[joined] += 1  # type: ignore[index]
    return [(first + timedelta(days=offset), counts[first + timedelta(days=offset)]) for offset in range(max(0, days))]


def totals_summary(entries: Sequence[EntryLike], users: Sequence[Union[User, Mapping[str, Any]]] = ()) -> Dict[str, int]:
    """Community headline numbers shown on the public reports page."""

    materialized = as_entries(entries)
    return {
        "total": sum(coerce_count(entry.count) for entry in materialized),
        "devotees": compute_devotee_adjusted_total(materialized),
        "users": len(users),
    }
