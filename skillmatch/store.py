"""Storage-client interface and the embedded TinyDB implementation.

The engine only ever talks to a SkillStore. Which concrete store backs it
is decided by the caller (see scripts/skillmatch_cli.py:build_store).
"""

import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from tinydb import Query, TinyDB

from skillmatch.log import get_logger
from skillmatch.models import FeedbackEvent, Membership, WorkerSkillProfile, WorkItem

logger = get_logger(__name__)

# One (TinyDB, Lock) handle per resolved file path, shared by every store
# opened on that file within the process.
_handles: dict[str, tuple[TinyDB, threading.Lock]] = {}
_handles_lock = threading.Lock()


def get_db(db_path: Path) -> tuple[TinyDB, threading.Lock]:
    """Open (or reuse) the TinyDB file at db_path together with its write lock."""
    key = str(Path(db_path).resolve())
    with _handles_lock:
        handle = _handles.get(key)
        if handle is None:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            handle = (TinyDB(key), threading.Lock())
            _handles[key] = handle
        return handle


def close_all() -> None:
    """Close every open TinyDB file and forget the handles."""
    with _handles_lock:
        for db, _ in _handles.values():
            db.close()
        _handles.clear()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SkillStore(ABC):
    """Everything the assignment engine, audit recorder and feedback loop read or write."""

    # -- reads used by an assignment run --

    @abstractmethod
    def get_item(self, work_item_id: str) -> WorkItem | None:
        """Return the work item, or None if it does not exist."""

    @abstractmethod
    def get_pool_members(self, pool_id: str) -> list[str]:
        """Worker ids of a delivery group, in enumeration order."""

    @abstractmethod
    def get_org_members(self, org_id: str) -> list[str]:
        """Worker ids of every member of an organizational unit."""

    @abstractmethod
    def get_profiles(self, worker_ids: list[str], skill_names: list[str]) -> list[WorkerSkillProfile]:
        """All profiles of the given workers for the given skills (case-insensitive), in one call."""

    @abstractmethod
    def get_in_flight_counts(self, worker_ids: list[str]) -> dict[str, int]:
        """In-flight work item count per worker. Missing workers count as 0."""

    @abstractmethod
    def get_memberships(self, worker_ids: list[str], org_id: str) -> dict[str, Membership]:
        """Org membership (role, joined_at, name) per worker, where one exists."""

    # -- worker skill profiles --

    @abstractmethod
    def list_profiles(self, worker_id: str) -> list[WorkerSkillProfile]:
        """Every skill profile of one worker."""

    @abstractmethod
    def upsert_profile(self, profile: WorkerSkillProfile) -> str:
        """Create or update a profile keyed by (worker_id, skill_name). Returns 'created' or 'updated'."""

    @abstractmethod
    def update_profile_counters(self, worker_id: str, skill_name: str, *, completed: int = 0,
                                declined: int = 0, positive: int = 0, negative: int = 0,
                                confidence_delta: float = 0.0, assessed_at: str = "") -> bool:
        """Increment aggregate counters on an existing profile. False if no profile exists."""

    # -- audit --

    @abstractmethod
    def save_assignment(self, record: dict) -> str:
        """Persist an audit record. Returns its id."""

    @abstractmethod
    def get_assignment(self, record_id: str) -> dict | None:
        """Return one audit record, or None."""

    @abstractmethod
    def update_assignment(self, record_id: str, fields: dict) -> bool:
        """Merge fields into an audit record. False if it does not exist."""

    @abstractmethod
    def list_assignments(self, work_item_id: str | None = None) -> list[dict]:
        """Audit records, optionally for one work item."""

    # -- feedback --

    @abstractmethod
    def append_feedback(self, event: FeedbackEvent) -> str:
        """Append a feedback event. Returns its id."""

    @abstractmethod
    def list_feedback(self, worker_id: str | None = None, skill_name: str | None = None,
                      processed: bool | None = None) -> list[FeedbackEvent]:
        """Feedback events in append order, filtered by the given fields."""

    @abstractmethod
    def mark_feedback_processed(self, event_ids: list[str]) -> int:
        """Flag events as folded into profile counters. Returns how many were updated."""

    # -- per-organization usage --

    @abstractmethod
    def increment_usage(self, org_id: str, counter: str, amount: int = 1) -> int:
        """Atomically add amount to an org's usage counter. Returns the new value."""

    @abstractmethod
    def get_usage(self, org_id: str) -> dict[str, int]:
        """All usage counters of an org."""


class TinyDBStore(SkillStore):
    """SkillStore backed by a single TinyDB JSON file. Thread-safe within one process."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db, self._lock = get_db(self.db_path)
        self.items = self.db.table("items")
        self.pools = self.db.table("pools")
        self.memberships = self.db.table("memberships")
        self.profiles = self.db.table("profiles")
        self.workload = self.db.table("workload")
        self.assignments = self.db.table("assignments")
        self.feedback = self.db.table("feedback")
        self.usage = self.db.table("usage")

    # -- reads --

    def get_item(self, work_item_id: str) -> WorkItem | None:
        Q = Query()
        with self._lock:
            doc = self.items.get(Q.id == work_item_id)
        return WorkItem.from_dict(doc) if doc else None

    def get_pool_members(self, pool_id: str) -> list[str]:
        Q = Query()
        with self._lock:
            doc = self.pools.get(Q.id == pool_id)
        return list(doc.get("members", [])) if doc else []

    def get_org_members(self, org_id: str) -> list[str]:
        Q = Query()
        with self._lock:
            docs = self.memberships.search(Q.org_id == org_id)
        return [d["worker_id"] for d in docs]

    def get_profiles(self, worker_ids: list[str], skill_names: list[str]) -> list[WorkerSkillProfile]:
        ids = set(worker_ids)
        wanted = {s.lower() for s in skill_names}
        Q = Query()
        with self._lock:
            docs = self.profiles.search(
                Q.worker_id.one_of(list(ids))
                & Q.skill_name.test(lambda s: isinstance(s, str) and s.lower() in wanted)
            )
        return [WorkerSkillProfile.from_dict(d) for d in docs]

    def get_in_flight_counts(self, worker_ids: list[str]) -> dict[str, int]:
        Q = Query()
        with self._lock:
            docs = self.workload.search(Q.worker_id.one_of(list(worker_ids)))
        counts = {wid: 0 for wid in worker_ids}
        for d in docs:
            counts[d["worker_id"]] = int(d.get("in_flight", 0))
        return counts

    def get_memberships(self, worker_ids: list[str], org_id: str) -> dict[str, Membership]:
        Q = Query()
        with self._lock:
            docs = self.memberships.search(
                Q.worker_id.one_of(list(worker_ids)) & (Q.org_id == org_id)
            )
        return {d["worker_id"]: Membership.from_dict(d) for d in docs}

    # -- profiles --

    def list_profiles(self, worker_id: str) -> list[WorkerSkillProfile]:
        Q = Query()
        with self._lock:
            docs = self.profiles.search(Q.worker_id == worker_id)
        profiles = [WorkerSkillProfile.from_dict(d) for d in docs]
        profiles.sort(key=lambda p: (-p.proficiency_level, p.skill_name))
        return profiles

    def _profile_cond(self, worker_id: str, skill_name: str):
        Q = Query()
        wanted = skill_name.lower()
        return (Q.worker_id == worker_id) & Q.skill_name.test(
            lambda s: isinstance(s, str) and s.lower() == wanted
        )

    def upsert_profile(self, profile: WorkerSkillProfile) -> str:
        cond = self._profile_cond(profile.worker_id, profile.skill_name)
        with self._lock:
            existing = self.profiles.get(cond)
            if existing:
                self.profiles.update({
                    "proficiency_level": profile.proficiency_level,
                    "interest_level": profile.interest_level.value,
                    "wants_to_learn": profile.wants_to_learn,
                    "source": profile.source,
                    "last_assessed": profile.last_assessed or _now(),
                }, cond)
                return "updated"
            self.profiles.insert(profile.to_dict())
            return "created"

    def update_profile_counters(self, worker_id: str, skill_name: str, *, completed: int = 0,
                                declined: int = 0, positive: int = 0, negative: int = 0,
                                confidence_delta: float = 0.0, assessed_at: str = "") -> bool:
        cond = self._profile_cond(worker_id, skill_name)
        with self._lock:
            doc = self.profiles.get(cond)
            if not doc:
                return False
            profile = WorkerSkillProfile.from_dict(doc)
            confidence = profile.confidence
            if confidence_delta:
                confidence = round(max(0.1, min(1.0, confidence + confidence_delta)), 2)
            self.profiles.update({
                "completed_count": profile.completed_count + completed,
                "declined_count": profile.declined_count + declined,
                "positive_feedback": profile.positive_feedback + positive,
                "negative_feedback": profile.negative_feedback + negative,
                "confidence": confidence,
                "last_assessed": assessed_at or _now(),
            }, cond)
        return True

    # -- audit --

    def save_assignment(self, record: dict) -> str:
        record = dict(record)
        if not record.get("id"):
            record["id"] = uuid.uuid4().hex[:12]
        Q = Query()
        # Keyed on id so a retried write that already landed stays one record.
        with self._lock:
            self.assignments.upsert(record, Q.id == record["id"])
        return record["id"]

    def get_assignment(self, record_id: str) -> dict | None:
        Q = Query()
        with self._lock:
            doc = self.assignments.get(Q.id == record_id)
        return dict(doc) if doc else None

    def update_assignment(self, record_id: str, fields: dict) -> bool:
        Q = Query()
        with self._lock:
            updated = self.assignments.update(fields, Q.id == record_id)
        return bool(updated)

    def list_assignments(self, work_item_id: str | None = None) -> list[dict]:
        Q = Query()
        with self._lock:
            if work_item_id:
                docs = self.assignments.search(Q.work_item_id == work_item_id)
            else:
                docs = self.assignments.all()
        return [dict(d) for d in docs]

    # -- feedback --

    def append_feedback(self, event: FeedbackEvent) -> str:
        if not event.id:
            event.id = uuid.uuid4().hex[:12]
        if not event.created_at:
            event.created_at = _now()
        Q = Query()
        with self._lock:
            self.feedback.upsert(event.to_dict(), Q.id == event.id)
        return event.id

    def list_feedback(self, worker_id: str | None = None, skill_name: str | None = None,
                      processed: bool | None = None) -> list[FeedbackEvent]:
        Q = Query()
        conditions = []
        if worker_id:
            conditions.append(Q.worker_id == worker_id)
        if skill_name:
            wanted = skill_name.lower()
            conditions.append(Q.skill_name.test(lambda s: isinstance(s, str) and s.lower() == wanted))
        if processed is not None:
            conditions.append(Q.processed == processed)

        with self._lock:
            if conditions:
                combined = conditions[0]
                for c in conditions[1:]:
                    combined = combined & c
                docs = self.feedback.search(combined)
            else:
                docs = self.feedback.all()
        return [FeedbackEvent.from_dict(d) for d in docs]

    def mark_feedback_processed(self, event_ids: list[str]) -> int:
        if not event_ids:
            return 0
        Q = Query()
        with self._lock:
            updated = self.feedback.update({"processed": True}, Q.id.one_of(list(event_ids)))
        return len(updated)

    # -- usage --

    def increment_usage(self, org_id: str, counter: str, amount: int = 1) -> int:
        Q = Query()
        with self._lock:
            doc = self.usage.get(Q.org_id == org_id)
            counters = dict(doc.get("counters", {})) if doc else {}
            counters[counter] = int(counters.get(counter, 0)) + amount
            self.usage.upsert(
                {"org_id": org_id, "counters": counters, "updated_at": _now()},
                Q.org_id == org_id,
            )
        return counters[counter]

    def get_usage(self, org_id: str) -> dict[str, int]:
        Q = Query()
        with self._lock:
            doc = self.usage.get(Q.org_id == org_id)
        return dict(doc.get("counters", {})) if doc else {}

    # -- seeding (not part of SkillStore) --

    def add_item(self, item: WorkItem | dict) -> None:
        doc = item.to_dict() if isinstance(item, WorkItem) else WorkItem.from_dict(item).to_dict()
        Q = Query()
        with self._lock:
            self.items.upsert(doc, Q.id == doc["id"])

    def set_pool(self, pool_id: str, members: list[str], org_id: str = "") -> None:
        Q = Query()
        with self._lock:
            self.pools.upsert({"id": pool_id, "org_id": org_id, "members": list(members)},
                              Q.id == pool_id)

    def add_membership(self, membership: Membership) -> None:
        Q = Query()
        with self._lock:
            self.memberships.upsert(
                membership.to_dict(),
                (Q.worker_id == membership.worker_id) & (Q.org_id == membership.org_id),
            )

    def set_in_flight(self, worker_id: str, count: int) -> None:
        Q = Query()
        with self._lock:
            self.workload.upsert({"worker_id": worker_id, "in_flight": int(count)},
                                 Q.worker_id == worker_id)

    def import_fixture(self, data: dict) -> dict[str, int]:
        """Load items, pools, members, profiles and in-flight counts from a parsed YAML mapping."""
        counts = {"items": 0, "pools": 0, "members": 0, "profiles": 0, "in_flight": 0}
        for item in data.get("items", []) or []:
            self.add_item(item)
            counts["items"] += 1
        for pool in data.get("pools", []) or []:
            self.set_pool(str(pool["id"]), [str(m) for m in pool.get("members", [])],
                          str(pool.get("org_id", "")))
            counts["pools"] += 1
        for member in data.get("members", []) or []:
            self.add_membership(Membership.from_dict(member))
            counts["members"] += 1
        for profile in data.get("profiles", []) or []:
            self.upsert_profile(WorkerSkillProfile.from_dict(profile))
            counts["profiles"] += 1
        for worker_id, count in (data.get("in_flight", {}) or {}).items():
            self.set_in_flight(str(worker_id), int(count))
            counts["in_flight"] += 1
        logger.info("Fixture imported: %s", counts)
        return counts
