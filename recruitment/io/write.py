from __future__ import annotations
import os
import csv
from io import StringIO
from typing import Dict, List, Optional
from datetime import datetime
from collections import Counter
import pandas as pd
from ..domain import Assignment, FinalResult, Snapshot
from ..preprocess.calendar import slots_by_day

APPLICANT_COLUMNS = [
    "id", "student_id", "name", "grade", "major", "contact", "email",
    "first_choice", "second_choice", "available_times_1", "available_times_2",
    "custom_time", "submitted_at", "resume_status", "first_interview_status",
    "second_interview_status", "final_result",
    *(f"interview{s}_{f}" for s in (1, 2) for f in ("interviewer_id", "slot_id", "time")),
]
SLOT_SUMMARY_COLUMNS = [
    "Day", "Department", "Slot", "Start", "Capacity",
    "Round1_Booked", "Round2_Booked", "Round1_Remaining", "Round2_Remaining",
]

def _fmt_time(dt: Optional[datetime]) -> str:
    return dt.strftime("%Y-%m-%d %H:%M") if dt else ""

def make_assignment_csv(snapshot: Snapshot) -> str:
    out = StringIO()
    w = csv.writer(out)
    w.writerow(["stage", "applicant_id", "applicant_name", "department", "slot_id", "interviewer_id", "time"])
    for stage in (1, 2):
        for app in snapshot.applicants:
            a = app.assignment(stage)
            if a is not None:
                w.writerow([stage, app.id, app.name, app.first_choice, a.slot_id, a.interviewer_id, a.time.isoformat()])
    return out.getvalue()

def make_ics(snapshot: Snapshot, interviewer_id: Optional[str] = None, tz: str = "UTC") -> str:
    def fmt(dt: datetime) -> str:
        return dt.strftime("%Y%m%dT%H%M%S")
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//RecruitmentScheduler//EN"]
    slot_by_id = snapshot.slot_by_id()
    names = {iv.id: iv.name for iv in snapshot.interviewers}
    for app in snapshot.applicants:
        for stage in (1, 2):
            a = app.assignment(stage)
            if a is None or (interviewer_id and a.interviewer_id != interviewer_id):
                continue
            slot = slot_by_id.get(a.slot_id)
            end = slot.end if slot else a.time
            lines += ["BEGIN:VEVENT",
                      f"UID:{app.id}-{stage}@recruitment",
                      f"DTSTART;TZID={tz}:{fmt(a.time)}",
                      f"DTEND;TZID={tz}:{fmt(end)}",
                      f"SUMMARY:Round {stage} interview — {app.name} ({app.first_choice})",
                      f"DESCRIPTION:Interviewer: {names.get(a.interviewer_id, a.interviewer_id)}",
                      "END:VEVENT"]
    lines.append("END:VCALENDAR")
    return "\n".join(lines)

def snapshot_frames(snapshot: Snapshot) -> Dict[str, pd.DataFrame]:
    """One DataFrame per sheet understood by read_snapshot_from_excel."""
    def _asg_cols(a: Optional[Assignment], stage: int) -> dict:
        return {
            f"interview{stage}_interviewer_id": a.interviewer_id if a else "",
            f"interview{stage}_slot_id": a.slot_id if a else "",
            f"interview{stage}_time": a.time.isoformat() if a else "",
        }
    app_rows: List[dict] = []
    for a in snapshot.applicants:
        app_rows.append({
            "id": a.id, "student_id": a.student_id, "name": a.name, "grade": a.grade,
            "major": a.major, "contact": a.contact, "email": a.email,
            "first_choice": a.first_choice, "second_choice": a.second_choice,
            "available_times_1": ",".join(a.available_times_1),
            "available_times_2": ",".join(a.available_times_2),
            "custom_time": a.custom_time,
            "submitted_at": a.submitted_at.isoformat() if a.submitted_at else "",
            "resume_status": a.status.resume.value,
            "first_interview_status": a.status.first_interview.value,
            "second_interview_status": a.status.second_interview.value,
            "final_result": a.status.final_result.value,
            **_asg_cols(a.interview_1, 1),
            **_asg_cols(a.interview_2, 2),
        })
    return {
        "Applicants": pd.DataFrame(app_rows, columns=APPLICANT_COLUMNS),
        "Interviewers": pd.DataFrame([{"id": i.id, "name": i.name, "department": i.department}
                                      for i in snapshot.interviewers], columns=["id", "name", "department"]),
        "Slots": pd.DataFrame([{"slot_id": s.id, "start": s.start.isoformat(), "end": s.end.isoformat()}
                               for s in snapshot.slots], columns=["slot_id", "start", "end"]),
        "Capacity": pd.DataFrame([{"department": d, "slot_id": sid, "capacity": c}
                                  for d, m in snapshot.capacity.items() for sid, c in m.items()],
                                 columns=["department", "slot_id", "capacity"]),
    }

def _write_sheets(frames: Dict[str, pd.DataFrame], path: str) -> str:
    dirpath = os.path.dirname(path)
    if dirpath:
        os.makedirs(dirpath, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, df in frames.items():
            df.to_excel(writer, sheet_name=name, index=False)
    return path

def write_snapshot_workbook(snapshot: Snapshot, *, path: str) -> str:
    return _write_sheets(snapshot_frames(snapshot), path)

# ---- Excel report ----

def make_excel_report(snapshot: Snapshot, *, path: str) -> str:
    iv_names = {iv.id: iv.name for iv in snapshot.interviewers}

    def _iv_name(a: Optional[Assignment]) -> str:
        if a is None:
            return "N/A"
        return iv_names.get(a.interviewer_id, "N/A")

    # 1) All_Applicants
    all_rows = []
    for app in snapshot.applicants:
        all_rows.append({
            "Name": app.name,
            "Student_ID": app.student_id,
            "Grade": app.grade,
            "Major": app.major,
            "Contact": app.contact,
            "Email": app.email,
            "First_Choice": app.first_choice,
            "Second_Choice": app.second_choice,
            "Submitted": _fmt_time(app.submitted_at),
            "Resume_Status": app.status.resume.value,
            "Interview1_Status": app.status.first_interview.value,
            "Interview2_Status": app.status.second_interview.value,
            "Final_Result": app.status.final_result.value,
            "Interview1_Time": _fmt_time(app.interview_1.time if app.interview_1 else None),
            "Interview1_Interviewer": _iv_name(app.interview_1),
            "Interview2_Time": _fmt_time(app.interview_2.time if app.interview_2 else None),
            "Interview2_Interviewer": _iv_name(app.interview_2),
        })
    df_all = pd.DataFrame(all_rows)

    # 2) Hired
    hired_rows = [{
        "Name": app.name,
        "Student_ID": app.student_id,
        "Major": app.major,
        "Contact": app.contact,
        "Email": app.email,
        "Department": app.first_choice,
    } for app in snapshot.applicants if app.status.final_result == FinalResult.HIRED]
    df_hired = pd.DataFrame(hired_rows, columns=["Name", "Student_ID", "Major", "Contact", "Email", "Department"])

    # 3) Slot_Summary (capacity vs bookings per department, per round, day by day)
    booked = {1: Counter(), 2: Counter()}
    for app in snapshot.applicants:
        for stage in (1, 2):
            a = app.assignment(stage)
            if a is not None:
                booked[stage][(app.first_choice, a.slot_id)] += 1
    slot_rows = []
    by_day = slots_by_day(snapshot.slots)
    for day in sorted(by_day):
        for slot in by_day[day]:
            sid = slot.id
            for dept in sorted(snapshot.capacity):
                if sid not in snapshot.capacity[dept]:
                    continue
                cap = snapshot.capacity[dept][sid]
                slot_rows.append({
                    "Day": day,
                    "Department": dept,
                    "Slot": sid,
                    "Start": _fmt_time(slot.start),
                    "Capacity": int(cap),
                    "Round1_Booked": booked[1][(dept, sid)],
                    "Round2_Booked": booked[2][(dept, sid)],
                    "Round1_Remaining": int(cap) - booked[1][(dept, sid)],
                    "Round2_Remaining": int(cap) - booked[2][(dept, sid)],
                })
    df_slots = pd.DataFrame(slot_rows, columns=SLOT_SUMMARY_COLUMNS)

    # 4) Interviewer_Load
    load = {1: Counter(), 2: Counter()}
    for app in snapshot.applicants:
        for stage in (1, 2):
            a = app.assignment(stage)
            if a is not None:
                load[stage][a.interviewer_id] += 1
    df_load = pd.DataFrame([{
        "Interviewer_Name": iv.name,
        "Department": iv.department,
        "Round1_Interviews": load[1][iv.id],
        "Round2_Interviews": load[2][iv.id],
        "Total_Interviews": load[1][iv.id] + load[2][iv.id],
    } for iv in snapshot.interviewers])

    return _write_sheets({
        "All_Applicants": df_all,
        "Hired": df_hired,
        "Slot_Summary": df_slots,
        "Interviewer_Load": df_load,
    }, path)
