"""Housekeeping — retention for folded feedback events and old audit records."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

from tinydb import Query

from skillmatch.config import RetentionConfig
from skillmatch.log import get_logger
from skillmatch.store import get_db

logger = get_logger(__name__)


class Housekeeper:
    """Enforces retention on a TinyDB store file."""

    def __init__(self, store_path: Path, retention: RetentionConfig | None = None):
        self.store_path = Path(store_path)
        self.retention = retention or RetentionConfig()

    def run_all(self) -> dict[str, int]:
        """Run all retention policies. Returns {table: records_removed}."""
        results = {
            "feedback": self.clean_feedback(),
            "assignments": self.clean_audit(),
        }
        total = sum(results.values())
        logger.info("Housekeeping complete: %d records removed (%s)", total, results)
        return results

    def _cutoff(self, days: int) -> str:
        return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()

    def clean_feedback(self) -> int:
        """Remove processed feedback events older than retention.feedback_days.

        Unprocessed events are kept regardless of age.
        """
        if not self.store_path.exists():
            return 0
        cutoff = self._cutoff(self.retention.feedback_days)
        db, lock = get_db(self.store_path)
        Q = Query()
        with lock:
            removed = db.table("feedback").remove(
                (Q.processed == True) & Q.created_at.test(lambda ts: bool(ts) and ts < cutoff)  # noqa: E712
            )
        return len(removed)

    def clean_audit(self) -> int:
        """Remove audit records older than retention.audit_days."""
        if not self.store_path.exists():
            return 0
        cutoff = self._cutoff(self.retention.audit_days)
        db, lock = get_db(self.store_path)
        Q = Query()
        with lock:
            removed = db.table("assignments").remove(
                Q.recorded_at.test(lambda ts: bool(ts) and ts < cutoff)
            )
        return len(removed)
