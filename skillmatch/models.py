"""Data model for work items, worker skill profiles, candidates and decisions."""

from dataclasses import dataclass, field
from enum import Enum


def _as_int(value, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class Priority(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, value) -> "Priority":
        """Lenient parse; missing or unknown priorities count as medium."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.MEDIUM


class Importance(Enum):
    REQUIRED = "required"
    PREFERRED = "preferred"


class InterestLevel(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"

    @classmethod
    def parse(cls, value) -> "InterestLevel":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.MEDIUM


class AssignmentType(Enum):
    SKILL_MATCH = "skill_match"
    INTEREST_MATCH = "interest_match"
    LEARNING_OPPORTUNITY = "learning_opportunity"
    WORKLOAD_BALANCE = "workload_balance"
    EXPERIENCE_BASED = "experience_based"
    SINGLE_DEVELOPER = "single_developer"
    MANUAL_OVERRIDE = "manual_override"


class FeedbackType(Enum):
    TICKET_COMPLETED = "ticket_completed"
    TICKET_DECLINED = "ticket_declined"
    TICKET_REASSIGNED = "ticket_reassigned"
    SCRUM_FEEDBACK = "scrum_feedback"
    PEER_FEEDBACK = "peer_feedback"


@dataclass
class SkillRequirement:
    skill_name: str
    importance: Importance = Importance.PREFERRED
    min_proficiency: int = 2

    @property
    def weight(self) -> int:
        return 2 if self.importance == Importance.REQUIRED else 1

    def to_dict(self) -> dict:
        return {
            "skill_name": self.skill_name,
            "importance": self.importance.value,
            "min_proficiency": self.min_proficiency,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SkillRequirement":
        importance = data.get("importance", "preferred")
        return cls(
            skill_name=data["skill_name"],
            importance=Importance.REQUIRED if importance == "required" else Importance.PREFERRED,
            min_proficiency=int(data.get("min_proficiency", 2)),
        )


@dataclass
class WorkItem:
    id: str
    title: str = ""
    description: str = ""
    priority: Priority = Priority.MEDIUM
    skills: list[SkillRequirement] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "WorkItem":
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            description=data.get("description") or "",
            priority=Priority.parse(data.get("priority")),
            skills=[SkillRequirement.from_dict(s) for s in data.get("skills") or []],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "skills": [s.to_dict() for s in self.skills],
        }


@dataclass
class WorkerSkillProfile:
    worker_id: str
    skill_name: str
    proficiency_level: int = 0
    interest_level: InterestLevel = InterestLevel.MEDIUM
    wants_to_learn: bool = False
    completed_count: int = 0
    declined_count: int = 0
    positive_feedback: int = 0
    negative_feedback: int = 0
    last_assessed: str = ""
    source: str = "self_declared"
    confidence: float = 0.8

    @classmethod
    def from_dict(cls, data: dict) -> "WorkerSkillProfile":
        """Build a profile from a stored record. Malformed fields fall back to neutral values."""
        try:
            confidence = float(data.get("confidence", 0.8))
        except (TypeError, ValueError):
            confidence = 0.8
        return cls(
            worker_id=str(data.get("worker_id", "")),
            skill_name=str(data.get("skill_name", "")),
            proficiency_level=max(0, min(5, _as_int(data.get("proficiency_level")))),
            interest_level=InterestLevel.parse(data.get("interest_level")),
            wants_to_learn=data.get("wants_to_learn") is True,
            completed_count=_as_int(data.get("completed_count")),
            declined_count=_as_int(data.get("declined_count")),
            positive_feedback=_as_int(data.get("positive_feedback")),
            negative_feedback=_as_int(data.get("negative_feedback")),
            last_assessed=data.get("last_assessed") or "",
            source=data.get("source") or "self_declared",
            confidence=confidence,
        )

    def to_dict(self) -> dict:
        return {
            "worker_id": self.worker_id,
            "skill_name": self.skill_name,
            "proficiency_level": self.proficiency_level,
            "interest_level": self.interest_level.value,
            "wants_to_learn": self.wants_to_learn,
            "completed_count": self.completed_count,
            "declined_count": self.declined_count,
            "positive_feedback": self.positive_feedback,
            "negative_feedback": self.negative_feedback,
            "last_assessed": self.last_assessed,
            "source": self.source,
            "confidence": self.confidence,
        }


@dataclass
class Membership:
    worker_id: str
    org_id: str
    role: str = "member"
    joined_at: str = ""  # ISO-8601
    name: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Membership":
        return cls(
            worker_id=str(data["worker_id"]),
            org_id=str(data.get("org_id", "")),
            role=data.get("role") or "member",
            joined_at=data.get("joined_at") or "",
            name=data.get("name") or "",
        )

    def to_dict(self) -> dict:
        return {
            "worker_id": self.worker_id,
            "org_id": self.org_id,
            "role": self.role,
            "joined_at": self.joined_at,
            "name": self.name,
        }


@dataclass
class SkillMatch:
    skill: str
    worker_level: int
    required_level: int
    interest: str
    wants_to_learn: bool

    def to_dict(self) -> dict:
        return {
            "skill": self.skill,
            "worker_level": self.worker_level,
            "required_level": self.required_level,
            "interest": self.interest,
            "wants_to_learn": self.wants_to_learn,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SkillMatch":
        return cls(
            skill=data["skill"],
            worker_level=int(data["worker_level"]),
            required_level=int(data["required_level"]),
            interest=data["interest"],
            wants_to_learn=bool(data["wants_to_learn"]),
        )


@dataclass
class Candidate:
    """Per-run scoring result for one eligible worker. All scores are ints in [0, 100]."""
    worker_id: str
    worker_name: str = "Unknown"
    skill_score: int = 50
    interest_score: int = 50
    workload_score: int = 100
    experience_score: int = 0
    total_score: int = 0
    reasons: list[str] = field(default_factory=list)
    skill_matches: list[SkillMatch] = field(default_factory=list)
    learning_opportunity: bool = False

    def to_dict(self) -> dict:
        return {
            "worker_id": self.worker_id,
            "worker_name": self.worker_name,
            "skill_score": self.skill_score,
            "interest_score": self.interest_score,
            "workload_score": self.workload_score,
            "experience_score": self.experience_score,
            "total_score": self.total_score,
            "reasons": list(self.reasons),
            "skill_matches": [m.to_dict() for m in self.skill_matches],
            "learning_opportunity": self.learning_opportunity,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Candidate":
        return cls(
            worker_id=data["worker_id"],
            worker_name=data.get("worker_name", "Unknown"),
            skill_score=int(data["skill_score"]),
            interest_score=int(data["interest_score"]),
            workload_score=int(data["workload_score"]),
            experience_score=int(data["experience_score"]),
            total_score=int(data["total_score"]),
            reasons=list(data.get("reasons", [])),
            skill_matches=[SkillMatch.from_dict(m) for m in data.get("skill_matches", [])],
            learning_opportunity=bool(data.get("learning_opportunity", False)),
        )


@dataclass
class AssignmentDecision:
    work_item_id: str
    winner_id: str
    assignment_type: AssignmentType
    score: int
    rationale: str
    winner_name: str = ""
    priority: Priority = Priority.MEDIUM
    candidates: list[Candidate] = field(default_factory=list)
    decided_at: str = ""
    overridden_by: str | None = None
    override_reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "work_item_id": self.work_item_id,
            "winner_id": self.winner_id,
            "winner_name": self.winner_name,
            "assignment_type": self.assignment_type.value,
            "score": self.score,
            "rationale": self.rationale,
            "priority": self.priority.value,
            "candidates": [c.to_dict() for c in self.candidates],
            "decided_at": self.decided_at,
            "overridden_by": self.overridden_by,
            "override_reason": self.override_reason,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AssignmentDecision":
        return cls(
            work_item_id=data["work_item_id"],
            winner_id=data["winner_id"],
            winner_name=data.get("winner_name", ""),
            assignment_type=AssignmentType(data["assignment_type"]),
            score=int(data["score"]),
            rationale=data.get("rationale", ""),
            priority=Priority.parse(data.get("priority")),
            candidates=[Candidate.from_dict(c) for c in data.get("candidates", [])],
            decided_at=data.get("decided_at", ""),
            overridden_by=data.get("overridden_by"),
            override_reason=data.get("override_reason"),
        )


@dataclass
class FeedbackEvent:
    worker_id: str
    feedback_type: FeedbackType
    skill_name: str
    proficiency_delta: int
    work_item_id: str | None = None
    notes: str | None = None
    id: str = ""
    processed: bool = False
    created_at: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "worker_id": self.worker_id,
            "work_item_id": self.work_item_id,
            "feedback_type": self.feedback_type.value,
            "skill_name": self.skill_name,
            "proficiency_delta": self.proficiency_delta,
            "notes": self.notes,
            "processed": self.processed,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FeedbackEvent":
        return cls(
            id=data.get("id", ""),
            worker_id=data["worker_id"],
            work_item_id=data.get("work_item_id"),
            feedback_type=FeedbackType(data["feedback_type"]),
            skill_name=data["skill_name"],
            proficiency_delta=int(data.get("proficiency_delta", 0)),
            notes=data.get("notes"),
            processed=bool(data.get("processed", False)),
            created_at=data.get("created_at", ""),
        )
