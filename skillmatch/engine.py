"""Ranking & assignment — picks one worker for a work item and explains why."""

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone

from skillmatch.access import StoreAccess
from skillmatch.audit import AuditRecorder
from skillmatch.config import EngineConfig
from skillmatch.exceptions import AssignmentUnavailable, ItemNotFound, NoDevelopersAvailable
from skillmatch.extractor import CapabilityExtractor, KeywordSkillInferencer, TextSkillInferencer
from skillmatch.log import get_logger
from skillmatch.models import (
    AssignmentDecision,
    AssignmentType,
    Candidate,
    Priority,
    SkillRequirement,
    WorkItem,
)
from skillmatch.pool import PoolResolver
from skillmatch.scoring import matches_learning_pattern, score_candidate
from skillmatch.weights import LEARNING_BONUS_PRIORITIES, aggregate, select_weights

logger = get_logger(__name__)

SINGLE_WORKER_SCORE = 100
SINGLE_WORKER_RATIONALE = "Only eligible worker in pool"
DEFAULT_MAX_WORKERS = 8
USAGE_COUNTER = "assignments"


def build_rationale(candidate: Candidate) -> str:
    return " | ".join([
        f"Score: {candidate.total_score}",
        f"Skills: {candidate.skill_score}%",
        f"Interest: {candidate.interest_score}%",
        f"Availability: {candidate.workload_score}%",
        f"Experience: {candidate.experience_score}%",
    ])


def rank_candidates(candidates: list[Candidate], work_item_id: str = "") -> list[Candidate]:
    """Descending by total score. Equal totals keep their input (pool) order."""
    if not candidates:
        raise NoDevelopersAvailable(work_item_id)
    return sorted(candidates, key=lambda c: c.total_score, reverse=True)


def classify(winner: Candidate, has_requirements: bool, priority: Priority) -> AssignmentType:
    """What drove the win."""
    if not has_requirements:
        if winner.workload_score > winner.experience_score:
            return AssignmentType.WORKLOAD_BALANCE
        return AssignmentType.EXPERIENCE_BASED
    if matches_learning_pattern(winner) and priority in LEARNING_BONUS_PRIORITIES:
        return AssignmentType.LEARNING_OPPORTUNITY
    if winner.interest_score > winner.skill_score:
        return AssignmentType.INTEREST_MATCH
    return AssignmentType.SKILL_MATCH


def select_winner(candidates: list[Candidate], work_item_id: str, has_requirements: bool,
                  priority: Priority, decided_at: str = "") -> AssignmentDecision:
    ranked = rank_candidates(candidates, work_item_id)
    winner = ranked[0]
    return AssignmentDecision(
        work_item_id=work_item_id,
        winner_id=winner.worker_id,
        winner_name=winner.worker_name,
        assignment_type=classify(winner, has_requirements, priority),
        score=winner.total_score,
        rationale=build_rationale(winner),
        priority=priority,
        candidates=ranked,
        decided_at=decided_at or datetime.now(timezone.utc).isoformat(),
    )


class AssignmentEngine:
    """Scores every eligible worker for a work item and selects one.

    Store reads go through StoreAccess (timeout plus one retry). A run keeps
    no state beyond its own inputs, so engines can be shared across threads.
    """

    def __init__(self, store, config: EngineConfig | None = None,
                 inferencer: TextSkillInferencer | None = None):
        self._owns_access = not isinstance(store, StoreAccess)
        if not self._owns_access:
            self.store = store
        elif config is not None:
            self.store = StoreAccess(store, timeout=config.store.timeout_seconds,
                                     backoff=config.store.retry_backoff_seconds)
        else:
            self.store = StoreAccess(store)
        self.config = config
        self.max_workers = config.engine.max_workers if config else DEFAULT_MAX_WORKERS
        if inferencer is None:
            extra = config.skills.keywords if config else None
            inferencer = KeywordSkillInferencer(extra_keywords=extra)
        self.extractor = CapabilityExtractor(self.store, inferencer)
        self.pool_resolver = PoolResolver(self.store)
        self.recorder = AuditRecorder(self.store)

    def close(self) -> None:
        """Release the StoreAccess this engine created. A caller-supplied one is left alone."""
        if self._owns_access:
            self.store.close()

    def _load_item(self, work_item_id: str) -> WorkItem:
        item = self.store.get_item(work_item_id)
        if item is None:
            raise ItemNotFound(work_item_id)
        return item

    def assign_work_item(self, work_item_id: str, pool_id: str, org_id: str) -> AssignmentDecision:
        """Select the best eligible worker. Nothing is written."""
        worker_ids = self.pool_resolver.resolve(pool_id, org_id)
        item = self._load_item(work_item_id)

        if len(worker_ids) == 1:
            return self._single_worker(item, worker_ids[0], org_id)

        requirements = self.extractor.requirements_for(item)
        candidates = self.score_pool(worker_ids, requirements, org_id, item.priority)
        decision = select_winner(candidates, item.id, bool(requirements), item.priority)
        logger.info("Assigned %s to %s (%s, score %d, %d candidates)",
                    item.id, decision.winner_id, decision.assignment_type.value,
                    decision.score, len(candidates))
        return decision

    def _single_worker(self, item: WorkItem, worker_id: str, org_id: str) -> AssignmentDecision:
        membership = self.store.get_memberships([worker_id], org_id).get(worker_id)
        logger.info("Assigned %s to %s (only eligible worker)", item.id, worker_id)
        return AssignmentDecision(
            work_item_id=item.id,
            winner_id=worker_id,
            winner_name=(membership.name if membership and membership.name else "Unknown"),
            assignment_type=AssignmentType.SINGLE_DEVELOPER,
            score=SINGLE_WORKER_SCORE,
            rationale=SINGLE_WORKER_RATIONALE,
            priority=item.priority,
            candidates=[],
            decided_at=datetime.now(timezone.utc).isoformat(),
        )

    def score_pool(self, worker_ids: list[str], requirements: list[SkillRequirement],
                   org_id: str, priority: Priority) -> list[Candidate]:
        """Score and weight every worker. Returned in pool order, unsorted."""
        skill_names = [r.skill_name for r in requirements]
        profiles_by_worker: dict[str, dict] = {wid: {} for wid in worker_ids}
        if skill_names:
            for profile in self.store.get_profiles(worker_ids, skill_names):
                if profile.worker_id in profiles_by_worker:
                    profiles_by_worker[profile.worker_id][profile.skill_name.lower()] = profile
        in_flight = self.store.get_in_flight_counts(worker_ids)
        memberships = self.store.get_memberships(worker_ids, org_id)

        weights = select_weights(priority)
        now = datetime.now(timezone.utc)
        results: dict[int, Candidate] = {}
        results_lock = threading.Lock()

        def _score(index: int, worker_id: str) -> tuple[int, Candidate]:
            candidate = score_candidate(
                worker_id, requirements, profiles_by_worker[worker_id],
                in_flight.get(worker_id, 0), memberships.get(worker_id), now,
            )
            aggregate(candidate, weights, priority)
            return index, candidate

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(worker_ids)) or 1,
                                thread_name_prefix="skillmatch-score") as pool:
            futures = [pool.submit(_score, i, wid) for i, wid in enumerate(worker_ids)]
            for future in as_completed(futures):
                index, candidate = future.result()
                with results_lock:
                    results[index] = candidate

        return [results[i] for i in range(len(worker_ids))]

    def assign_and_record(self, work_item_id: str, pool_id: str, org_id: str) -> tuple[AssignmentDecision, str]:
        """Compute a decision, write it to the audit log once, and count it for the org.

        Returns (decision, record_id). If the audit write fails the decision
        is attached to the AuditWriteFailed raised.
        """
        decision = self.assign_work_item(work_item_id, pool_id, org_id)
        record_id = self.recorder.record_assignment(work_item_id, decision)
        try:
            self.store.increment_usage(org_id, USAGE_COUNTER)
        except AssignmentUnavailable as e:
            logger.warning("Usage counter not updated for org %s: %s", org_id, e)
        return decision, record_id
