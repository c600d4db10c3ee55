from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass, fields, replace
from datetime import date, datetime, timezone
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .config import Settings
from .domain import (
    Applicant, ApplicantStatus, ApplicationStatus, Assignment, FinalResult, Interviewer,
    Slot, Snapshot, Stage,
)
from .heuristics.greedy import reconcile
from .preprocess.calendar import generate_slots, localize, merge_slots
from .store import Repository

logger = logging.getLogger(__name__)

STATUS_FIELDS = {f.name for f in fields(ApplicantStatus)}


@dataclass(frozen=True)
class SlotAvailability:
    slot: Slot
    capacity: int
    requested: int

    @property
    def open(self) -> bool:
        return self.capacity > 0 and self.requested < self.capacity


class RecruitmentService:
    """
    The only writer of recruitment state.

    Each mutation runs inside one ``repository.update`` call: apply the change,
    then reconcile interview assignments, then persist. Callers never have to
    remember to re-run the scheduler.
    """

    def __init__(self, repository: Repository, settings: Optional[Settings] = None):
        self.repository = repository
        self.settings = settings or Settings()

    # ---- write path ----

    def _write(self, change: Callable[[Snapshot], Snapshot]) -> Snapshot:
        stages = tuple(self.settings.stages)
        return self.repository.update(lambda snap: reconcile(change(snap), stages))

    def snapshot(self) -> Snapshot:
        return self.repository.load()

    def reconcile(self) -> Snapshot:
        return self._write(lambda snap: snap)

    # ---- applicants ----

    def submit_application(self, *, name: str, first_choice: str, second_choice: str = "",
                           available_times_1: Sequence[str] = (), available_times_2: Sequence[str] = (),
                           student_id: str = "", grade: str = "", major: str = "", contact: str = "",
                           email: str = "", custom_time: str = "",
                           submitted_at: Optional[datetime] = None) -> Applicant:
        for dept in (first_choice, second_choice):
            if dept and not self.settings.accepts_department(dept):
                raise ValueError(f"Department is not recruiting: {dept}")
        app = Applicant(
            id=uuid.uuid4().hex,
            name=name,
            first_choice=first_choice,
            second_choice=second_choice,
            available_times_1=tuple(available_times_1),
            available_times_2=tuple(available_times_2),
            student_id=student_id, grade=grade, major=major,
            contact=contact, email=email, custom_time=custom_time,
            submitted_at=submitted_at or datetime.now(timezone.utc),
        )
        snap = self._write(lambda s: replace(s, applicants=s.applicants + (app,)))
        logger.info("Application %s received for %s", app.id, first_choice)
        return snap.applicant(app.id)

    def update_status(self, applicant_id: str, field: str, value) -> Applicant:
        if field not in STATUS_FIELDS:
            raise ValueError(f"Unknown status field: {field}")
        enum_cls = FinalResult if field == "final_result" else ApplicationStatus
        try:
            value = enum_cls(value)
        except ValueError:
            raise ValueError(f"Invalid value for {field}: {value!r}")

        def change(s: Snapshot) -> Snapshot:
            s.applicant(applicant_id)   # KeyError for unknown ids
            apps = tuple(a.with_status(**{field: value}) if a.id == applicant_id else a
                         for a in s.applicants)
            return replace(s, applicants=apps)

        return self._write(change).applicant(applicant_id)

    def find_applicant(self, student_id: str, name: str, contact: str) -> Optional[Applicant]:
        key = (student_id.strip(), name.strip(), contact.strip())
        for app in self.snapshot().applicants:
            if (app.student_id, app.name, app.contact) == key:
                return app
        return None

    # ---- interviewers ----

    def register_interviewer(self, name: str, department: str, invitation_code: str) -> Interviewer:
        if invitation_code != self.settings.invitation_code:
            raise PermissionError("Invalid invitation code")
        if not self.settings.accepts_department(department):
            raise ValueError(f"Department is not recruiting: {department}")
        iv = Interviewer(id=uuid.uuid4().hex, name=name, department=department)
        self._write(lambda s: replace(s, interviewers=s.interviewers + (iv,)))
        logger.info("Interviewer %s registered for %s", name, department)
        return iv

    def clear_interviewers(self) -> None:
        self._write(lambda s: replace(s, interviewers=()))

    def change_invitation_code(self, code: str) -> None:
        code = code.strip()
        if not code:
            raise ValueError("Invitation code cannot be empty")
        if code == self.settings.invitation_code:
            return
        # Registrations made under the old code are void.
        self.clear_interviewers()
        self.settings = self.settings.model_copy(update={"invitation_code": code})
        logger.info("Invitation code changed; interviewer roster cleared")

    def interviewer_schedule(self, interviewer_id: str) -> List[Tuple[Applicant, Stage, Assignment]]:
        rows: List[Tuple[Applicant, Stage, Assignment]] = []
        for app in self.snapshot().applicants:
            for stage in (1, 2):
                a = app.assignment(stage)
                if a is not None and a.interviewer_id == interviewer_id:
                    rows.append((app, stage, a))
        tzinfo = self.settings.tzinfo()
        rows.sort(key=lambda r: localize(r[2].time, tzinfo))
        return rows

    # ---- slots & capacity ----

    def add_slots(self, slots: Iterable[Slot]) -> Snapshot:
        new = list(slots)
        return self._write(lambda s: replace(s, slots=merge_slots(s.slots, new, self.settings.tzinfo())))

    def generate_slots(self, start_date: date, end_date: Optional[date] = None,
                       start_time: Optional[str] = None, end_time: Optional[str] = None,
                       minutes: Optional[int] = None) -> List[Slot]:
        cfg = self.settings
        slots = generate_slots(
            start_date, end_date,
            start_time or cfg.day_start, end_time or cfg.day_end,
            cfg.slot_minutes if minutes is None else minutes,
            timezone=cfg.timezone,
        )
        if not slots:
            raise ValueError("No slots generated; check the time range and slot length")
        self.add_slots(slots)
        logger.info("Generated %d interview slots", len(slots))
        return slots

    def delete_slot(self, slot_id: str) -> None:
        self._write(lambda s: replace(s, slots=tuple(x for x in s.slots if x.id != slot_id)))

    def set_capacity(self, department: str, slot_id: str, value: int) -> None:
        value = max(0, int(value))

        def change(s: Snapshot) -> Snapshot:
            capacity = {d: dict(m) for d, m in s.capacity.items()}
            capacity.setdefault(department, {})[slot_id] = value
            return replace(s, capacity=capacity)

        self._write(change)

    def set_all_capacities(self, department: str, value: int) -> None:
        value = max(0, int(value))

        def change(s: Snapshot) -> Snapshot:
            capacity = {d: dict(m) for d, m in s.capacity.items()}
            capacity[department] = {slot.id: value for slot in s.slots}
            return replace(s, capacity=capacity)

        self._write(change)

    def slot_availability(self, department: str) -> List[SlotAvailability]:
        """Per-slot view for the intake form: capacity versus declared requests."""
        snap = self.snapshot()
        caps = snap.capacity.get(department, {})
        out: List[SlotAvailability] = []
        for slot in snap.slots:
            requested = sum(
                1 for a in snap.applicants
                if (a.first_choice == department and slot.id in a.available_times_1)
                or (a.second_choice == department and slot.id in a.available_times_2)
            )
            out.append(SlotAvailability(slot=slot, capacity=int(caps.get(slot.id, 0)), requested=requested))
        return out
