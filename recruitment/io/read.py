from __future__ import annotations
from datetime import datetime, tzinfo as tzinfo_t
from typing import Dict, Iterable, Optional, Tuple
import pandas as pd
from dateutil import parser, tz as dtz
from ..domain import (
    Applicant, ApplicantStatus, Assignment, Interviewer, Slot, Snapshot,
)

REQUIRED_COLUMNS = {
    "Applicants": ("id", "first_choice"),
    "Interviewers": ("id", "department"),
    "Slots": ("slot_id", "start", "end"),
    "Capacity": ("department", "slot_id", "capacity"),
}

def read_snapshot_from_excel(file_like, *, timezone: Optional[str] = None) -> Snapshot:
    """
    Load a snapshot from the four input sheets.

    With `timezone`, naive datetimes in the workbook are read as wall-clock
    time in that zone so they compare cleanly with generated slots.
    """
    xls = pd.ExcelFile(file_like)
    missing = set(REQUIRED_COLUMNS) - set(xls.sheet_names)
    if missing:
        raise ValueError(f"Workbook is missing sheets: {sorted(missing)}")
    tzinfo = None
    if timezone:
        tzinfo = dtz.gettz(timezone)
        if tzinfo is None:
            raise ValueError(f"Unknown timezone: {timezone}")

    slots = pd.read_excel(xls, "Slots", dtype={"slot_id": str})
    _require_columns("Slots", slots.columns)
    slot_objs: list[Slot] = []
    for _, r in slots.iterrows():
        slot_objs.append(Slot(
            id=str(r["slot_id"]).strip(),
            start=_parse_dt(r["start"], tzinfo),
            end=_parse_dt(r["end"], tzinfo),
        ))
    slot_start = {s.id: s.start for s in slot_objs}

    people = pd.read_excel(xls, "Interviewers", dtype=str, keep_default_na=False)
    _require_columns("Interviewers", people.columns)
    ivs: list[Interviewer] = []
    for _, r in people.iterrows():
        iid = str(r["id"]).strip()
        ivs.append(Interviewer(id=iid, name=str(r.get("name", "") or iid).strip(),
                               department=str(r["department"]).strip()))

    cap_df = pd.read_excel(xls, "Capacity", dtype={"department": str, "slot_id": str})
    _require_columns("Capacity", cap_df.columns)
    capacity: Dict[str, Dict[str, int]] = {}
    for _, r in cap_df.iterrows():
        raw = r["capacity"]
        cap = 0 if pd.isna(raw) else max(0, int(raw))
        capacity.setdefault(str(r["department"]).strip(), {})[str(r["slot_id"]).strip()] = cap

    apps_df = pd.read_excel(xls, "Applicants", dtype=str, keep_default_na=False)
    _require_columns("Applicants", apps_df.columns)
    # Submission order is the tie-break order; sort only when timestamps are given.
    if "submitted_at" in apps_df.columns and (apps_df["submitted_at"] != "").all():
        apps_df = apps_df.assign(_ts=apps_df["submitted_at"].map(lambda v: _parse_dt(v, tzinfo or dtz.UTC)))
        apps_df = apps_df.sort_values("_ts", kind="stable")
    applicants = [_row_to_applicant(r, slot_start, tzinfo) for _, r in apps_df.iterrows()]

    return Snapshot(applicants=tuple(applicants), interviewers=tuple(ivs),
                    slots=tuple(slot_objs), capacity=capacity)

# helpers
def _require_columns(sheet: str, columns: Iterable) -> None:
    lacking = [c for c in REQUIRED_COLUMNS[sheet] if c not in set(columns)]
    if lacking:
        raise ValueError(f"{sheet} sheet is missing columns: {lacking}")

def _parse_dt(value, tzinfo: Optional[tzinfo_t] = None) -> datetime:
    if isinstance(value, pd.Timestamp):
        dt = value.to_pydatetime()
    elif isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = parser.parse(str(value))
        except (ValueError, OverflowError):
            raise ValueError(f"Unrecognized datetime: {value}")
    if tzinfo is not None and dt.tzinfo is None:
        dt = dt.replace(tzinfo=tzinfo)
    return dt

def _split_ids(cell: str) -> Tuple[str, ...]:
    return tuple(p.strip() for p in str(cell or "").split(",") if p.strip())

def _status(row, col: str, default):
    val = str(row.get(col, "") or "").strip()
    return type(default)(val) if val else default

def _assignment(row, stage: int, slot_start: Dict[str, datetime],
                tzinfo: Optional[tzinfo_t]) -> Optional[Assignment]:
    iid = str(row.get(f"interview{stage}_interviewer_id", "") or "").strip()
    sid = str(row.get(f"interview{stage}_slot_id", "") or "").strip()
    if not iid or not sid:
        return None
    raw_time = str(row.get(f"interview{stage}_time", "") or "").strip()
    when = _parse_dt(raw_time, tzinfo) if raw_time else slot_start.get(sid)
    if when is None:
        raise ValueError(f"Assignment for applicant {row.get('id')} references unknown slot {sid} without a time")
    return Assignment(interviewer_id=iid, slot_id=sid, time=when)

def _row_to_applicant(r, slot_start: Dict[str, datetime], tzinfo: Optional[tzinfo_t]) -> Applicant:
    defaults = ApplicantStatus()
    submitted = str(r.get("submitted_at", "") or "").strip()
    return Applicant(
        id=str(r["id"]).strip(),
        name=str(r.get("name", "")).strip(),
        first_choice=str(r["first_choice"]).strip(),
        second_choice=str(r.get("second_choice", "")).strip(),
        available_times_1=_split_ids(r.get("available_times_1", "")),
        available_times_2=_split_ids(r.get("available_times_2", "")),
        student_id=str(r.get("student_id", "")).strip(),
        grade=str(r.get("grade", "")).strip(),
        major=str(r.get("major", "")).strip(),
        contact=str(r.get("contact", "")).strip(),
        email=str(r.get("email", "")).strip(),
        custom_time=str(r.get("custom_time", "")).strip(),
        submitted_at=_parse_dt(submitted, tzinfo) if submitted else None,
        status=ApplicantStatus(
            resume=_status(r, "resume_status", defaults.resume),
            first_interview=_status(r, "first_interview_status", defaults.first_interview),
            second_interview=_status(r, "second_interview_status", defaults.second_interview),
            final_result=_status(r, "final_result", defaults.final_result),
        ),
        interview_1=_assignment(r, 1, slot_start, tzinfo),
        interview_2=_assignment(r, 2, slot_start, tzinfo),
    )
