from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, Literal, Optional, Tuple

Stage = Literal[1, 2]
STAGES: Tuple[Stage, ...] = (1, 2)

# department -> slot_id -> capacity (0 = closed)
Capacity = Dict[str, Dict[str, int]]


class ApplicationStatus(str, Enum):
    PENDING = "Pending"
    PASSED = "Passed"
    REJECTED = "Rejected"


class FinalResult(str, Enum):
    HIRED = "Hired"
    TO_BE_DISCUSSED = "To be discussed"
    NOT_HIRED = "Not hired"


@dataclass(frozen=True)
class Slot:
    id: str
    start: datetime
    end: datetime

    @property
    def day_key(self) -> str:
        return self.start.date().isoformat()


@dataclass(frozen=True)
class Interviewer:
    id: str
    name: str
    department: str


@dataclass(frozen=True)
class Assignment:
    interviewer_id: str
    slot_id: str
    time: datetime


@dataclass(frozen=True)
class ApplicantStatus:
    resume: ApplicationStatus = ApplicationStatus.PENDING
    first_interview: ApplicationStatus = ApplicationStatus.PENDING
    second_interview: ApplicationStatus = ApplicationStatus.PENDING
    final_result: FinalResult = FinalResult.TO_BE_DISCUSSED


@dataclass(frozen=True)
class Applicant:
    id: str
    name: str
    first_choice: str
    second_choice: str = ""
    available_times_1: Tuple[str, ...] = ()
    available_times_2: Tuple[str, ...] = ()
    student_id: str = ""
    grade: str = ""
    major: str = ""
    contact: str = ""
    email: str = ""
    custom_time: str = ""
    submitted_at: Optional[datetime] = None
    status: ApplicantStatus = field(default_factory=ApplicantStatus)
    interview_1: Optional[Assignment] = None
    interview_2: Optional[Assignment] = None

    def assignment(self, stage: Stage) -> Optional[Assignment]:
        return self.interview_1 if stage == 1 else self.interview_2

    def with_assignment(self, stage: Stage, assignment: Assignment) -> "Applicant":
        if stage == 1:
            return replace(self, interview_1=assignment)
        return replace(self, interview_2=assignment)

    def with_status(self, **changes) -> "Applicant":
        return replace(self, status=replace(self.status, **changes))


@dataclass(frozen=True)
class Snapshot:
    """Everything the scheduler reads in one consistent view.

    ``applicants`` are kept in submission order and ``interviewers`` in
    registration order; both orders drive tie-breaking.
    """
    applicants: Tuple[Applicant, ...] = ()
    interviewers: Tuple[Interviewer, ...] = ()
    slots: Tuple[Slot, ...] = ()
    capacity: Capacity = field(default_factory=dict)

    def slot_by_id(self) -> Dict[str, Slot]:
        return {s.id: s for s in self.slots}

    def applicant(self, applicant_id: str) -> Applicant:
        for app in self.applicants:
            if app.id == applicant_id:
                return app
        raise KeyError(f"Unknown applicant: {applicant_id}")
