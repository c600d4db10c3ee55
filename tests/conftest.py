from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from recruitment.domain import (
    Applicant,
    ApplicantStatus,
    ApplicationStatus,
    Interviewer,
    Slot,
    Snapshot,
)

PASSED = ApplicationStatus.PASSED
BASE = datetime(2025, 9, 20, 18, 0)


def make_slot(sid: str, offset_min: int = 0, minutes: int = 20) -> Slot:
    start = BASE + timedelta(minutes=offset_min)
    return Slot(id=sid, start=start, end=start + timedelta(minutes=minutes))


def make_applicant(
    aid: str,
    dept: str = "D",
    times1=(),
    times2=(),
    resume=PASSED,
    first_interview=ApplicationStatus.PENDING,
    **kw,
) -> Applicant:
    return Applicant(
        id=aid,
        name=aid,
        first_choice=dept,
        second_choice=kw.pop("second_choice", "E"),
        available_times_1=tuple(times1),
        available_times_2=tuple(times2),
        status=ApplicantStatus(resume=resume, first_interview=first_interview),
        **kw,
    )


@pytest.fixture
def slots() -> tuple[Slot, ...]:
    return (make_slot("slotA", 0), make_slot("slotB", 20), make_slot("slotC", 40))


@pytest.fixture
def example_snapshot(slots) -> Snapshot:
    """Department D with capacity {slotA: 1, slotB: 2} and two interviewers."""
    return Snapshot(
        applicants=(
            make_applicant("App1", times1=["slotA"]),
            make_applicant("App2", times1=["slotA", "slotB"]),
        ),
        interviewers=(Interviewer("I1", "Ivy", "D"), Interviewer("I2", "Ian", "D")),
        slots=slots,
        capacity={"D": {"slotA": 1, "slotB": 2}},
    )
