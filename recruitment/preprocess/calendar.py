from __future__ import annotations
from datetime import date, datetime, time, timedelta, tzinfo as tzinfo_t
from typing import Dict, Iterable, List, Optional
from dateutil import tz as dtz
from ..domain import Slot

def _parse_hhmm(value: str) -> time:
    try:
        hh, mm = value.strip().split(":")
        return time(int(hh), int(mm))
    except (ValueError, AttributeError):
        raise ValueError(f"Expected HH:MM, got {value!r}")

def slot_id_for(start: datetime) -> str:
    return f"slot_{start.strftime('%Y%m%dT%H%M')}"

def generate_slots(start_date: date, end_date: Optional[date], start_time: str, end_time: str,
                   minutes: int, *, timezone: Optional[str] = None) -> List[Slot]:
    """
    Cut each day in [start_date, end_date] into back-to-back slots of `minutes`.

    A slot that would run past `end_time` is dropped. `end_date` defaults to
    `start_date`. Days whose window is empty produce nothing.
    """
    if minutes is None or minutes <= 0:
        raise ValueError("Slot length must be a positive number of minutes")
    end_date = end_date or start_date
    if start_date > end_date:
        raise ValueError("End date cannot be earlier than start date")
    t0, t1 = _parse_hhmm(start_time), _parse_hhmm(end_time)
    tzinfo = dtz.gettz(timezone) if timezone else None
    if timezone and tzinfo is None:
        raise ValueError(f"Unknown timezone: {timezone}")

    step = timedelta(minutes=int(minutes))
    out: List[Slot] = []
    d = start_date
    while d <= end_date:
        cur = datetime.combine(d, t0, tzinfo=tzinfo)
        day_end = datetime.combine(d, t1, tzinfo=tzinfo)
        while cur + step <= day_end:
            out.append(Slot(id=slot_id_for(cur), start=cur, end=cur + step))
            cur += step
        d += timedelta(days=1)
    return out

def localize(dt: datetime, tzinfo: Optional[tzinfo_t] = None) -> datetime:
    """Read naive datetimes as wall-clock time in `tzinfo` (UTC when not given)."""
    if dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=tzinfo or dtz.UTC)

def merge_slots(existing: Iterable[Slot], new: Iterable[Slot],
                tzinfo: Optional[tzinfo_t] = None) -> tuple[Slot, ...]:
    """Append slots whose ids are not taken yet and keep the list sorted by start."""
    by_id: Dict[str, Slot] = {s.id: s for s in existing}
    for s in new:
        by_id.setdefault(s.id, s)
    return tuple(sorted(by_id.values(),
                        key=lambda s: (localize(s.start, tzinfo), localize(s.end, tzinfo), s.id)))

def slots_by_day(slots: Iterable[Slot], tzinfo: Optional[tzinfo_t] = None) -> Dict[str, List[Slot]]:
    by_day: Dict[str, List[Slot]] = {}
    for s in slots:
        by_day.setdefault(s.day_key, []).append(s)
    for day in by_day:
        by_day[day].sort(key=lambda s: (localize(s.start, tzinfo), localize(s.end, tzinfo)))
    return by_day
