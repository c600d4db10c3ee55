from __future__ import annotations
import logging
from collections import Counter
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..domain import (
    Applicant, ApplicationStatus, Assignment, Interviewer, STAGES, Slot, Snapshot, Stage,
)

logger = logging.getLogger(__name__)


def is_eligible(app: Applicant, stage: Stage) -> bool:
    """Gate passed and no assignment yet for this stage."""
    if app.assignment(stage) is not None:
        return False
    gate = app.status.resume if stage == 1 else app.status.first_interview
    return gate == ApplicationStatus.PASSED


def candidate_slots(app: Applicant, stage: Stage) -> Tuple[str, ...]:
    # Round two falls back to the first-choice availability when none was given.
    if stage == 1:
        return app.available_times_1
    return app.available_times_2 or app.available_times_1


def _first_open_slot(
    dept: str,
    candidates: Sequence[str],
    slot_by_id: Dict[str, Slot],
    capacity: Dict[str, int],
    booked: Counter,
) -> Optional[Slot]:
    for sid in candidates:
        slot = slot_by_id.get(sid)
        if slot is None:
            continue
        cap = int(capacity.get(sid, 0) or 0)
        if booked[(dept, sid)] < cap:
            return slot
    return None


def _least_loaded(staff: Sequence[Interviewer], load: Counter) -> Interviewer:
    # min() keeps the first of equal keys, so ties go to the earliest registration.
    return min(staff, key=lambda iv: load[iv.id])


def schedule_stage(snapshot: Snapshot, stage: Stage) -> Snapshot:
    """
    One greedy assignment pass for an interview round.

    - Walk eligible applicants in submission order.
    - Department is always the applicant's first choice.
    - Take the first candidate slot (in the applicant's own order) whose
      department bookings for this round are still under capacity.
    - Give the interview to the department interviewer with the fewest
      bookings this round; ties go to whoever registered first.
    - Bookings made here count immediately for later applicants.

    Existing assignments are never touched, even when capacity has since been
    lowered below what is already booked.
    """
    slot_by_id = snapshot.slot_by_id()

    booked: Counter = Counter()   # (department, slot_id) -> bookings this round
    load: Counter = Counter()     # interviewer_id -> bookings this round
    for app in snapshot.applicants:
        a = app.assignment(stage)
        if a is not None:
            booked[(app.first_choice, a.slot_id)] += 1
            load[a.interviewer_id] += 1

    staff_by_dept: Dict[str, List[Interviewer]] = {}
    for iv in snapshot.interviewers:
        staff_by_dept.setdefault(iv.department, []).append(iv)

    updated = list(snapshot.applicants)
    eligible = assigned = 0
    for idx, app in enumerate(updated):
        if not is_eligible(app, stage):
            continue
        eligible += 1
        dept = app.first_choice

        slot = _first_open_slot(
            dept, candidate_slots(app, stage), slot_by_id, snapshot.capacity.get(dept, {}), booked
        )
        if slot is None:
            logger.debug("Stage %s: no open slot for applicant %s in %s", stage, app.id, dept)
            continue

        staff = staff_by_dept.get(dept)
        if not staff:
            logger.debug("Stage %s: no interviewers registered for %s", stage, dept)
            continue
        iv = _least_loaded(staff, load)

        updated[idx] = app.with_assignment(
            stage, Assignment(interviewer_id=iv.id, slot_id=slot.id, time=slot.start)
        )
        booked[(dept, slot.id)] += 1
        load[iv.id] += 1
        assigned += 1

    if eligible:
        logger.info("Stage %s: scheduled %d of %d waiting applicants", stage, assigned, eligible)
    if not assigned:
        return snapshot
    return replace(snapshot, applicants=tuple(updated))


def reconcile(snapshot: Snapshot, stages: Iterable[Stage] = STAGES) -> Snapshot:
    """Bring assignments up to date with the current snapshot. Safe to repeat."""
    for stage in stages:
        snapshot = schedule_stage(snapshot, stage)
    return snapshot


def unscheduled(snapshot: Snapshot, stage: Stage) -> List[Applicant]:
    return [app for app in snapshot.applicants if is_eligible(app, stage)]
