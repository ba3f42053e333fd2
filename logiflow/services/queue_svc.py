"""Call-center queue projection - pure filtering over a lead snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Iterable
from zoneinfo import ZoneInfo

from ..constants import TERMINAL_CALL_STATUSES

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class DateTimeFilter:
    """Date-range and/or time-of-day window on one datetime column."""

    field: str = "last_updated"
    date_from: date | None = None
    date_to: date | None = None
    time_from: time | None = None
    time_to: time | None = None


@dataclass
class QueueFilters:
    search: str | None = None
    # column -> accepted values (any match)
    columns: dict[str, list[str]] = field(default_factory=dict)
    datetimes: list[DateTimeFilter] = field(default_factory=list)
    include_terminal: bool = False


def minutes_since_midnight(value: time) -> int:
    return value.hour * 60 + value.minute


def in_time_window(moment: time, start: time | None, end: time | None) -> bool:
    """Time-of-day check in whole minutes; ``start > end`` wraps past midnight."""
    minutes = minutes_since_midnight(moment)
    lo = minutes_since_midnight(start) if start else 0
    hi = minutes_since_midnight(end) if end else 24 * 60 - 1
    if lo <= hi:
        return lo <= minutes <= hi
    return minutes >= lo or minutes <= hi


def _local(value: Any, tz: ZoneInfo) -> datetime | None:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    # Naive values are already wall-clock times
    if value.tzinfo is None:
        return value
    return value.astimezone(tz)


def matches_datetime(lead: dict, flt: DateTimeFilter, tz: ZoneInfo) -> bool:
    moment = _local(lead.get(flt.field), tz)
    if moment is None:
        return False
    if flt.date_from and moment.date() < flt.date_from:
        return False
    if flt.date_to and moment.date() > flt.date_to:
        return False
    if flt.time_from or flt.time_to:
        return in_time_window(moment.time(), flt.time_from, flt.time_to)
    return True


def matches_columns(lead: dict, columns: dict[str, list[str]]) -> bool:
    for column, accepted in columns.items():
        if not accepted:
            continue
        value = lead.get(column)
        values = value if isinstance(value, list) else [value]
        if not any(str(v) in accepted for v in values if v is not None):
            return False
    return True


def matches_search(lead: dict, search: str) -> bool:
    needle = search.strip().lower()
    if not needle:
        return True
    haystack = (lead.get("nombres"), lead.get("apellidos"), lead.get("dni"), lead.get("celular"), lead.get("email"))
    return any(needle in str(v).lower() for v in haystack if v)


def _sort_key(lead: dict) -> datetime:
    value = lead.get("last_updated")
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return _EPOCH


def project_queue(leads: Iterable[dict], filters: QueueFilters | None = None, tz: str = "UTC") -> list[dict]:
    """Apply the queue predicate, newest activity first, then the user filters."""
    filters = filters or QueueFilters()
    zone = ZoneInfo(tz)

    visible = [
        lead for lead in leads
        if filters.include_terminal or lead.get("call_status") not in TERMINAL_CALL_STATUSES
    ]
    visible.sort(key=_sort_key, reverse=True)

    if filters.search:
        visible = [lead for lead in visible if matches_search(lead, filters.search)]
    if filters.columns:
        visible = [lead for lead in visible if matches_columns(lead, filters.columns)]
    for flt in filters.datetimes:
        visible = [lead for lead in visible if matches_datetime(lead, flt, zone)]
    return visible
