"""Audit recorder — one durable record per assignment decision, plus later overrides."""

import uuid
from datetime import datetime, timezone

from skillmatch.exceptions import (
    AssignmentUnavailable,
    AuditWriteFailed,
    StoreError,
    ValidationError,
)
from skillmatch.log import get_logger
from skillmatch.models import AssignmentDecision, AssignmentType

logger = get_logger(__name__)

_WRITE_ERRORS = (AssignmentUnavailable, StoreError, OSError)


def decision_from_record(record: dict) -> AssignmentDecision:
    """Rebuild the decision as it was recorded (type reflects any override)."""
    return AssignmentDecision.from_dict(record)


class AuditRecorder:
    """Writes and reads assignment audit records through a SkillStore."""

    def __init__(self, store):
        self.store = store

    def record_assignment(self, work_item_id: str, decision: AssignmentDecision,
                          overridden_by: str | None = None,
                          override_reason: str | None = None) -> str:
        """Persist a decision. Returns the record id.

        When overridden_by is given the record is stored as a manual override
        while the computed type is kept in original_assignment_type.
        """
        now = datetime.now(timezone.utc).isoformat()
        record = decision.to_dict()
        record.update({
            "id": uuid.uuid4().hex[:12],
            "work_item_id": work_item_id,
            "original_assignment_type": decision.assignment_type.value,
            "overridden_by": overridden_by,
            "override_reason": override_reason,
            "override_assignee": None,
            "recorded_at": now,
        })
        if overridden_by:
            record["assignment_type"] = AssignmentType.MANUAL_OVERRIDE.value
            record["overridden_at"] = now

        try:
            record_id = self.store.save_assignment(record)
        except _WRITE_ERRORS as e:
            logger.error("Audit write failed for %s: %s", work_item_id, e)
            raise AuditWriteFailed(work_item_id, str(e), decision=decision) from e

        logger.info("Recorded assignment %s for %s -> %s", record_id, work_item_id, decision.winner_id)
        return record_id

    def override(self, record_id: str, overridden_by: str, override_reason: str,
                 new_winner_id: str | None = None) -> dict:
        """Mark a recorded decision as manually overridden. Returns the updated record.

        Score, rationale and candidates stay as computed.
        """
        if not overridden_by:
            raise ValidationError("overridden_by is required", suggestion="Pass who made the override.")
        record = self.get(record_id)
        if record is None:
            raise ValidationError(
                f"Assignment record '{record_id}' not found",
                suggestion="Run 'skillmatch history ITEM' to list record ids.",
            )

        fields = {
            "assignment_type": AssignmentType.MANUAL_OVERRIDE.value,
            "original_assignment_type": record.get("original_assignment_type") or record["assignment_type"],
            "overridden_by": overridden_by,
            "override_reason": override_reason,
            "overridden_at": datetime.now(timezone.utc).isoformat(),
        }
        if new_winner_id:
            fields["override_assignee"] = new_winner_id

        try:
            self.store.update_assignment(record_id, fields)
        except _WRITE_ERRORS as e:
            logger.error("Override write failed for record %s: %s", record_id, e)
            raise AuditWriteFailed(record.get("work_item_id", record_id), str(e)) from e

        logger.info("Assignment %s overridden by %s", record_id, overridden_by)
        record.update(fields)
        return record

    def get(self, record_id: str) -> dict | None:
        return self.store.get_assignment(record_id)

    def history(self, work_item_id: str) -> list[dict]:
        """All records for a work item, newest first."""
        records = self.store.list_assignments(work_item_id)
        return sorted(records, key=lambda r: r.get("recorded_at", ""), reverse=True)
