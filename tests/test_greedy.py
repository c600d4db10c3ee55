"""Behaviour of the greedy interview assignment passes."""

from __future__ import annotations

from collections import Counter
from dataclasses import replace

from conftest import PASSED, make_applicant, make_slot
from recruitment.domain import Assignment, Interviewer, Snapshot
from recruitment.heuristics.greedy import (
    candidate_slots,
    is_eligible,
    reconcile,
    schedule_stage,
    unscheduled,
)


def _by_id(snapshot: Snapshot):
    return {a.id: a for a in snapshot.applicants}


class TestExampleScenario:
    def test_first_applicant_takes_first_slot_and_first_interviewer(self, example_snapshot) -> None:
        out = _by_id(schedule_stage(example_snapshot, 1))

        assert out["App1"].interview_1.slot_id == "slotA"
        assert out["App1"].interview_1.interviewer_id == "I1"

    def test_full_slot_is_skipped_and_load_goes_to_idle_interviewer(self, example_snapshot) -> None:
        out = _by_id(schedule_stage(example_snapshot, 1))

        assert out["App2"].interview_1.slot_id == "slotB"
        assert out["App2"].interview_1.interviewer_id == "I2"

    def test_assignment_time_is_slot_start(self, example_snapshot, slots) -> None:
        out = _by_id(schedule_stage(example_snapshot, 1))

        assert out["App2"].interview_1.time == slots[1].start

    def test_stage_two_untouched_by_stage_one_pass(self, example_snapshot) -> None:
        out = schedule_stage(example_snapshot, 1)

        assert all(a.interview_2 is None for a in out.applicants)


class TestEligibility:
    def test_resume_gate(self) -> None:
        app = make_applicant("A", resume="Pending")
        assert not is_eligible(app, 1)
        assert is_eligible(replace(app, status=replace(app.status, resume=PASSED)), 1)

    def test_first_interview_gate(self) -> None:
        app = make_applicant("A", first_interview=PASSED)
        assert is_eligible(app, 2)
        assert not is_eligible(make_applicant("B"), 2)

    def test_assigned_applicant_is_not_eligible(self, slots) -> None:
        app = make_applicant("A").with_assignment(1, Assignment("I1", "slotA", slots[0].start))
        assert not is_eligible(app, 1)

    def test_rejected_resume_never_scheduled(self, example_snapshot) -> None:
        apps = tuple(a.with_status(resume="Rejected") for a in example_snapshot.applicants)
        snap = replace(example_snapshot, applicants=apps)

        assert reconcile(snap) == snap


class TestCandidateSlots:
    def test_stage_one_uses_first_list_in_selection_order(self) -> None:
        app = make_applicant("A", times1=["slotC", "slotA"], times2=["slotB"])
        assert candidate_slots(app, 1) == ("slotC", "slotA")

    def test_stage_two_uses_second_list(self) -> None:
        app = make_applicant("A", times1=["slotA"], times2=["slotB"])
        assert candidate_slots(app, 2) == ("slotB",)

    def test_stage_two_falls_back_to_first_list(self, example_snapshot) -> None:
        apps = tuple(
            replace(a, status=replace(a.status, first_interview=PASSED))
            for a in example_snapshot.applicants
        )
        out = schedule_stage(replace(example_snapshot, applicants=apps), 2)

        for app in out.applicants:
            assert app.interview_2 is not None
            assert app.interview_2.slot_id in app.available_times_1

    def test_selection_order_beats_chronological_order(self, example_snapshot) -> None:
        app = make_applicant("A", times1=["slotB", "slotA"])
        snap = replace(example_snapshot, applicants=(app,))

        assert schedule_stage(snap, 1).applicants[0].interview_1.slot_id == "slotB"

    def test_unknown_slot_id_is_skipped(self, example_snapshot) -> None:
        app = make_applicant("A", times1=["ghost", "slotB"])
        snap = replace(
            example_snapshot,
            applicants=(app,),
            capacity={"D": {"ghost": 5, "slotB": 1}},
        )

        assert schedule_stage(snap, 1).applicants[0].interview_1.slot_id == "slotB"


class TestCapacity:
    def test_capacity_never_exceeded(self, slots) -> None:
        apps = tuple(make_applicant(f"A{i}", times1=["slotA", "slotB", "slotC"]) for i in range(10))
        snap = Snapshot(
            applicants=apps,
            interviewers=(Interviewer("I1", "Ivy", "D"),),
            slots=slots,
            capacity={"D": {"slotA": 2, "slotB": 1, "slotC": 3}},
        )
        out = reconcile(reconcile(snap))

        counts = Counter(a.interview_1.slot_id for a in out.applicants if a.interview_1)
        assert counts == {"slotA": 2, "slotB": 1, "slotC": 3}
        assert len(unscheduled(out, 1)) == 4

    def test_capacity_is_per_department(self, slots) -> None:
        snap = Snapshot(
            applicants=(
                make_applicant("A", dept="D", times1=["slotA"]),
                make_applicant("B", dept="E", times1=["slotA"]),
            ),
            interviewers=(Interviewer("I1", "Ivy", "D"), Interviewer("J1", "Jo", "E")),
            slots=slots,
            capacity={"D": {"slotA": 1}, "E": {"slotA": 1}},
        )
        out = _by_id(schedule_stage(snap, 1))

        assert out["A"].interview_1.interviewer_id == "I1"
        assert out["B"].interview_1.interviewer_id == "J1"

    def test_zero_capacity_department_never_scheduled(self, example_snapshot) -> None:
        snap = replace(example_snapshot, capacity={"D": {"slotA": 0, "slotB": 0}})
        out = snap
        for _ in range(5):
            out = reconcile(out)

        assert out == snap
        assert len(unscheduled(out, 1)) == 2

    def test_missing_capacity_entry_means_closed(self, example_snapshot) -> None:
        snap = replace(example_snapshot, capacity={})
        assert schedule_stage(snap, 1) == snap

    def test_second_choice_department_is_not_used(self, slots) -> None:
        app = make_applicant("A", dept="D", second_choice="E", times1=["slotA"])
        snap = Snapshot(
            applicants=(app,),
            interviewers=(Interviewer("J1", "Jo", "E"),),
            slots=slots,
            capacity={"E": {"slotA": 5}},
        )

        assert schedule_stage(snap, 1) == snap


class TestInterviewerBalancing:
    def test_tie_goes_to_earliest_registered(self, slots) -> None:
        snap = Snapshot(
            applicants=(make_applicant("A", times1=["slotA"]),),
            interviewers=(Interviewer("late", "Z", "D"), Interviewer("early", "A", "D")),
            slots=slots,
            capacity={"D": {"slotA": 1}},
        )
        # registration order is tuple order, not id or name order
        assert schedule_stage(snap, 1).applicants[0].interview_1.interviewer_id == "late"

    def test_persisted_load_counts(self, example_snapshot, slots) -> None:
        booked = make_applicant("Old", times1=["slotC"]).with_assignment(
            1, Assignment("I1", "slotC", slots[2].start)
        )
        snap = replace(
            example_snapshot,
            applicants=(booked,) + example_snapshot.applicants[1:],
        )
        out = _by_id(schedule_stage(snap, 1))

        assert out["App2"].interview_1.interviewer_id == "I2"

    def test_round_robin_within_one_pass(self, slots) -> None:
        apps = tuple(make_applicant(f"A{i}", times1=["slotA"]) for i in range(6))
        snap = Snapshot(
            applicants=apps,
            interviewers=(Interviewer("I1", "a", "D"), Interviewer("I2", "b", "D"), Interviewer("I3", "c", "D")),
            slots=slots,
            capacity={"D": {"slotA": 6}},
        )
        out = schedule_stage(snap, 1)

        assert [a.interview_1.interviewer_id for a in out.applicants] == ["I1", "I2", "I3"] * 2

    def test_no_interviewer_leaves_applicant_waiting(self, example_snapshot) -> None:
        snap = replace(example_snapshot, interviewers=(Interviewer("X", "x", "Other"),))
        out = reconcile(snap)

        assert out == snap
        assert [a.id for a in unscheduled(out, 1)] == ["App1", "App2"]

    def test_stage_loads_are_independent(self, example_snapshot, slots) -> None:
        # I1 carries three round-one interviews; round two still starts with I1.
        heavy = tuple(
            make_applicant(f"H{i}", times1=["slotC"]).with_assignment(1, Assignment("I1", "slotC", slots[2].start))
            for i in range(3)
        )
        app = make_applicant("R2", times1=["slotA"], first_interview=PASSED).with_assignment(
            1, Assignment("I2", "slotA", slots[0].start)
        )
        snap = replace(example_snapshot, applicants=heavy + (app,))
        out = _by_id(schedule_stage(snap, 2))

        assert out["R2"].interview_2.interviewer_id == "I1"
        assert out["R2"].interview_2.slot_id == "slotA"


class TestReconcile:
    def test_idempotent(self, example_snapshot) -> None:
        once = reconcile(example_snapshot)
        assert reconcile(once) == once

    def test_submission_order_decides_contention(self, example_snapshot) -> None:
        swapped = replace(example_snapshot, applicants=example_snapshot.applicants[::-1])
        out = _by_id(schedule_stage(swapped, 1))

        assert out["App2"].interview_1.slot_id == "slotA"
        assert out["App1"].interview_1 is None

    def test_lowered_capacity_keeps_existing_assignment(self, example_snapshot) -> None:
        first = reconcile(example_snapshot)
        lowered = replace(first, capacity={"D": {"slotA": 0, "slotB": 2}})
        again = reconcile(lowered)

        assert _by_id(again)["App1"].interview_1 == _by_id(first)["App1"].interview_1

    def test_roster_change_keeps_existing_assignment(self, example_snapshot) -> None:
        first = reconcile(example_snapshot)
        again = reconcile(replace(first, interviewers=()))

        assert again.applicants == first.applicants

    def test_new_capacity_picks_up_waiting_applicant(self, slots) -> None:
        snap = Snapshot(
            applicants=(make_applicant("A", times1=["slotA"]),),
            interviewers=(Interviewer("I1", "Ivy", "D"),),
            slots=slots,
            capacity={"D": {"slotA": 0}},
        )
        assert reconcile(snap) == snap

        opened = reconcile(replace(snap, capacity={"D": {"slotA": 1}}))
        assert opened.applicants[0].interview_1.slot_id == "slotA"

    def test_other_fields_are_preserved(self, example_snapshot) -> None:
        out = reconcile(example_snapshot)
        for before, after in zip(example_snapshot.applicants, out.applicants):
            assert replace(after, interview_1=None) == before

    def test_both_stages_in_one_call(self, slots) -> None:
        app = make_applicant("A", times1=["slotA"], times2=["slotB"], first_interview=PASSED)
        snap = Snapshot(
            applicants=(app,),
            interviewers=(Interviewer("I1", "Ivy", "D"),),
            slots=(make_slot("slotA"), make_slot("slotB", 20)),
            capacity={"D": {"slotA": 1, "slotB": 1}},
        )
        out = reconcile(snap).applicants[0]

        assert out.interview_1.slot_id == "slotA"
        assert out.interview_2.slot_id == "slotB"
