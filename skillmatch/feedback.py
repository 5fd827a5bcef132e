"""Feedback loop — records outcome signals and folds them into skill profile counters.

Events are appended unprocessed and folded later by apply_pending(), either
on demand or periodically by FeedbackProcessor. Folding only touches the
counters (completed/declined/positive/negative), confidence and
last_assessed; a worker's proficiency level is never recomputed here.
"""

import threading
from datetime import datetime, timezone

from skillmatch.exceptions import AssignmentUnavailable, ValidationError
from skillmatch.log import get_logger
from skillmatch.models import FeedbackEvent, FeedbackType, InterestLevel, WorkerSkillProfile

logger = get_logger(__name__)

FEEDBACK_DELTAS = {
    FeedbackType.TICKET_COMPLETED: 1,
    FeedbackType.TICKET_DECLINED: -1,
    FeedbackType.SCRUM_FEEDBACK: -1,
    FeedbackType.TICKET_REASSIGNED: 0,
    FeedbackType.PEER_FEEDBACK: 0,
}

SCRUM_CONFIDENCE_PENALTY = 0.1
SCRUM_BEGINNER_LEVEL = 1
SCRUM_BEGINNER_CONFIDENCE = 0.6
PROFILE_SOURCE_SCRUM = "scrum_feedback"


def parse_feedback_type(value) -> FeedbackType:
    if isinstance(value, FeedbackType):
        return value
    try:
        return FeedbackType(str(value).strip().lower())
    except ValueError:
        valid = ", ".join(t.value for t in FeedbackType)
        raise ValidationError(
            f"Invalid feedback type '{value}'",
            suggestion=f"Use one of: {valid}.",
        )


def declare_skill(store, worker_id: str, skill_name: str, proficiency: int,
                  interest="medium", wants_to_learn: bool = False) -> str:
    """Create or update a worker's self-declared skill. Returns 'created' or 'updated'."""
    if not worker_id or not skill_name:
        raise ValidationError("worker_id and skill_name are required")
    if not isinstance(proficiency, int) or not 0 <= proficiency <= 5:
        raise ValidationError(
            f"Proficiency must be an integer 0-5, got {proficiency!r}",
            suggestion="0 = none, 1 = beginner ... 5 = expert.",
        )
    interest_text = interest.value if isinstance(interest, InterestLevel) else str(interest).strip().lower()
    if interest_text not in {i.value for i in InterestLevel}:
        raise ValidationError(
            f"Invalid interest level '{interest}'",
            suggestion="Use one of: high, medium, low, none.",
        )
    profile = WorkerSkillProfile(
        worker_id=worker_id,
        skill_name=skill_name,
        proficiency_level=proficiency,
        interest_level=InterestLevel(interest_text),
        wants_to_learn=bool(wants_to_learn),
        last_assessed=datetime.now(timezone.utc).isoformat(),
    )
    return store.upsert_profile(profile)


class FeedbackLoop:
    """Appends feedback events and folds them into profile counters."""

    def __init__(self, store):
        self.store = store
        self._apply_lock = threading.Lock()

    def _skills_for(self, work_item_id: str | None, skill_name: str | None) -> list[str]:
        if skill_name:
            return [skill_name]
        if not work_item_id:
            return []
        item = self.store.get_item(work_item_id)
        if item is None:
            logger.debug("Feedback for unknown item %s has no skills to record", work_item_id)
            return []
        return [s.skill_name for s in item.skills]

    def record_feedback(self, worker_id: str, work_item_id: str | None, feedback_type,
                        skill_name: str | None = None, notes: str | None = None) -> list[FeedbackEvent]:
        """Append one event per affected skill. Returns the events written.

        Skills come from skill_name, else from the item's explicit
        requirements. With neither, nothing is recorded.
        """
        ftype = parse_feedback_type(feedback_type)
        skills = self._skills_for(work_item_id, skill_name)
        delta = FEEDBACK_DELTAS[ftype]

        events = []
        for skill in skills:
            event = FeedbackEvent(
                worker_id=worker_id,
                feedback_type=ftype,
                skill_name=skill,
                proficiency_delta=delta,
                work_item_id=work_item_id,
                notes=notes,
            )
            self.store.append_feedback(event)
            events.append(event)

        if events:
            logger.info("Recorded %s for %s on %s", ftype.value, worker_id,
                        ", ".join(e.skill_name for e in events))
        return events

    def record_scrum_feedback(self, worker_id: str, skill_name: str, knows: bool | None,
                              notes: str | None = None) -> FeedbackEvent:
        """Quick signal from a standup: the worker does or does not know a skill.

        A worker who says they don't know a skill they have no profile for
        gets a beginner profile straight away. That event is stored already
        processed since the new profile carries its effect.
        """
        if not worker_id or not skill_name:
            raise ValidationError("worker_id and skill_name are required")

        delta = 1 if knows is True else -1 if knows is False else 0
        if notes is None:
            if knows is True:
                notes = "Demonstrated knowledge in scrum"
            elif knows is False:
                notes = "Mentioned lack of knowledge in scrum"
            else:
                notes = "Discussed in scrum"

        event = FeedbackEvent(
            worker_id=worker_id,
            feedback_type=FeedbackType.SCRUM_FEEDBACK,
            skill_name=skill_name,
            proficiency_delta=delta,
            notes=notes,
        )

        known = {p.skill_name.lower() for p in self.store.list_profiles(worker_id)}
        if knows is False and skill_name.lower() not in known:
            self.store.upsert_profile(WorkerSkillProfile(
                worker_id=worker_id,
                skill_name=skill_name,
                proficiency_level=SCRUM_BEGINNER_LEVEL,
                negative_feedback=1,
                source=PROFILE_SOURCE_SCRUM,
                confidence=SCRUM_BEGINNER_CONFIDENCE,
                last_assessed=datetime.now(timezone.utc).isoformat(),
            ))
            event.processed = True
            logger.info("Created beginner %s profile for %s from scrum feedback", skill_name, worker_id)

        self.store.append_feedback(event)
        return event

    def apply_pending(self) -> int:
        """Fold every unprocessed event into its profile. Returns events processed.

        Events with no matching profile or a zero delta are marked processed
        without changing anything. Each event is marked right after it is
        folded, so a store failure partway through never folds an event twice.
        """
        with self._apply_lock:
            pending = self.store.list_feedback(processed=False)
            if not pending:
                return 0

            neutral = [e.id for e in pending if e.proficiency_delta == 0]
            self.store.mark_feedback_processed(neutral)

            updated = 0
            for event in pending:
                if event.proficiency_delta == 0:
                    continue
                penalty = (-SCRUM_CONFIDENCE_PENALTY
                           if event.feedback_type == FeedbackType.SCRUM_FEEDBACK
                           and event.proficiency_delta < 0 else 0.0)
                if self.store.update_profile_counters(
                    event.worker_id,
                    event.skill_name,
                    completed=1 if event.feedback_type == FeedbackType.TICKET_COMPLETED else 0,
                    declined=1 if event.feedback_type == FeedbackType.TICKET_DECLINED else 0,
                    positive=1 if event.proficiency_delta > 0 else 0,
                    negative=1 if event.proficiency_delta < 0 else 0,
                    confidence_delta=penalty,
                    assessed_at=datetime.now(timezone.utc).isoformat(),
                ):
                    updated += 1
                self.store.mark_feedback_processed([event.id])

            logger.info("Folded %d feedback events (%d profiles updated)", len(pending), updated)
            return len(pending)

    def summary(self, worker_id: str, skill_name: str | None = None, limit: int = 50) -> dict:
        """Latest events for a worker and positive/negative/neutral counts per skill."""
        events = self.store.list_feedback(worker_id=worker_id, skill_name=skill_name)
        events = sorted(events, key=lambda e: e.created_at, reverse=True)[:max(0, limit)]

        per_skill: dict[str, dict[str, int]] = {}
        for event in events:
            if not event.skill_name:
                continue
            counts = per_skill.setdefault(event.skill_name, {"positive": 0, "negative": 0, "neutral": 0})
            if event.proficiency_delta > 0:
                counts["positive"] += 1
            elif event.proficiency_delta < 0:
                counts["negative"] += 1
            else:
                counts["neutral"] += 1

        return {
            "worker_id": worker_id,
            "events": events,
            "summary": per_skill,
            "total": len(events),
        }


class FeedbackProcessor:
    """Runs FeedbackLoop.apply_pending() on an interval with APScheduler."""

    JOB_ID = "skillmatch-feedback"

    def __init__(self, loop: FeedbackLoop, interval_seconds: int = 60):
        self.loop = loop
        self.interval_seconds = interval_seconds
        self._scheduler = None

    def _get_scheduler(self):
        """Lazy-init APScheduler."""
        if self._scheduler is None:
            from apscheduler.schedulers.background import BackgroundScheduler
            self._scheduler = BackgroundScheduler()
        return self._scheduler

    @property
    def running(self) -> bool:
        return bool(self._scheduler and self._scheduler.running)

    def start(self) -> None:
        scheduler = self._get_scheduler()
        scheduler.add_job(
            self.run_once, "interval",
            seconds=self.interval_seconds, id=self.JOB_ID,
            max_instances=1, coalesce=True, replace_existing=True,
        )
        if not scheduler.running:
            scheduler.start()
        logger.info("Feedback processor started (every %ds)", self.interval_seconds)

    def stop(self) -> None:
        if self._scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    def run_once(self) -> int:
        """One folding pass. Store outages are logged and retried on the next tick."""
        try:
            return self.loop.apply_pending()
        except AssignmentUnavailable as e:
            logger.warning("Feedback folding skipped: %s", e)
            return 0
