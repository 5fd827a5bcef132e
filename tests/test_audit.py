"""Tests for skillmatch/audit.py — audit records and overrides."""

import threading
import time
from unittest.mock import patch

import pytest

from skillmatch.access import StoreAccess
from skillmatch.audit import AuditRecorder, decision_from_record
from skillmatch.exceptions import AuditWriteFailed, StoreError, ValidationError
from skillmatch.models import AssignmentDecision, AssignmentType, Candidate, Priority


def _decision(item="T-1", winner="a", kind=AssignmentType.SKILL_MATCH):
    return AssignmentDecision(
        work_item_id=item,
        winner_id=winner,
        winner_name=winner.title(),
        assignment_type=kind,
        score=77,
        rationale="Score: 77 | Skills: 70% | Interest: 60% | Availability: 100% | Experience: 83%",
        priority=Priority.CRITICAL,
        candidates=[Candidate(worker_id=winner, total_score=77), Candidate(worker_id="b", total_score=40)],
        decided_at="2025-06-01T12:00:00+00:00",
    )


@pytest.fixture
def recorder(store):
    return AuditRecorder(store)


class TestRecordAssignment:
    def test_record_and_get(self, recorder):
        record_id = recorder.record_assignment("T-1", _decision())
        record = recorder.get(record_id)
        assert record["winner_id"] == "a"
        assert record["assignment_type"] == "skill_match"
        assert record["original_assignment_type"] == "skill_match"
        assert record["overridden_by"] is None
        assert [c["worker_id"] for c in record["candidates"]] == ["a", "b"]

    def test_record_with_override_at_write_time(self, recorder):
        record_id = recorder.record_assignment("T-1", _decision(), overridden_by="lead",
                                               override_reason="on call")
        record = recorder.get(record_id)
        assert record["assignment_type"] == "manual_override"
        assert record["original_assignment_type"] == "skill_match"
        assert record["overridden_by"] == "lead"
        assert record["override_reason"] == "on call"

    def test_decision_round_trip(self, recorder):
        decision = _decision()
        record = recorder.get(recorder.record_assignment("T-1", decision))
        assert decision_from_record(record) == decision

    def test_one_write_per_record(self, recorder, store):
        with patch.object(store, "save_assignment", wraps=store.save_assignment) as spy:
            recorder.record_assignment("T-1", _decision())
        assert spy.call_count == 1

    def test_store_failure_raises_audit_write_failed(self, recorder, store):
        decision = _decision()
        with patch.object(store, "save_assignment", side_effect=StoreError("save", "locked")):
            with pytest.raises(AuditWriteFailed) as exc:
                recorder.record_assignment("T-1", decision)
        assert exc.value.decision is decision
        assert store.list_assignments() == []


class TestOverride:
    def test_override_keeps_computed_fields(self, recorder):
        record_id = recorder.record_assignment("T-1", _decision())
        updated = recorder.override(record_id, "lead", "pairing week", new_winner_id="b")

        stored = recorder.get(record_id)
        assert stored == updated
        assert stored["assignment_type"] == "manual_override"
        assert stored["original_assignment_type"] == "skill_match"
        assert stored["override_assignee"] == "b"
        assert stored["winner_id"] == "a"
        assert stored["score"] == 77
        assert stored["rationale"].startswith("Score: 77")
        assert len(stored["candidates"]) == 2

    def test_second_override_keeps_original_type(self, recorder):
        record_id = recorder.record_assignment("T-1", _decision(kind=AssignmentType.INTEREST_MATCH))
        recorder.override(record_id, "lead", "first")
        recorder.override(record_id, "manager", "second")
        stored = recorder.get(record_id)
        assert stored["original_assignment_type"] == "interest_match"
        assert stored["overridden_by"] == "manager"

    def test_unknown_record(self, recorder):
        with pytest.raises(ValidationError, match="not found"):
            recorder.override("nope", "lead", "x")

    def test_override_needs_author(self, recorder):
        record_id = recorder.record_assignment("T-1", _decision())
        with pytest.raises(ValidationError):
            recorder.override(record_id, "", "x")


class TestHistory:
    def test_newest_first(self, recorder, store):
        store.save_assignment({"id": "old", "work_item_id": "T-1", "recorded_at": "2025-01-01T00:00:00+00:00"})
        store.save_assignment({"id": "new", "work_item_id": "T-1", "recorded_at": "2025-03-01T00:00:00+00:00"})
        store.save_assignment({"id": "other", "work_item_id": "T-2", "recorded_at": "2025-02-01T00:00:00+00:00"})
        assert [r["id"] for r in recorder.history("T-1")] == ["new", "old"]

    def test_empty(self, recorder):
        assert recorder.history("T-9") == []


class TestRetriedWrite:
    def test_slow_first_save_leaves_one_record(self, store):
        """A first write that times out but still lands is not duplicated by the retry."""
        landed = threading.Event()
        real_save = store.save_assignment
        calls = []

        def slow_first_save(record):
            calls.append(record["id"])
            if len(calls) == 1:
                time.sleep(0.3)
                result = real_save(record)
                landed.set()
                return result
            return real_save(record)

        with patch.object(store, "save_assignment", side_effect=slow_first_save):
            recorder = AuditRecorder(StoreAccess(store, timeout=0.1, backoff=0))
            record_id = recorder.record_assignment("T-1", _decision())
            assert landed.wait(5)

        assert calls == [record_id, record_id]
        assert [r["id"] for r in store.list_assignments("T-1")] == [record_id]
