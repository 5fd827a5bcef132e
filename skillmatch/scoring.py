"""Candidate scoring — skill, interest, workload and experience components.

Every component is an integer in [0, 100]. Missing or malformed profile
data never raises; it scores as proficiency 0, interest medium, not
wanting to learn.
"""

import math
from datetime import datetime, timezone

from skillmatch.models import (
    Candidate,
    InterestLevel,
    Membership,
    SkillMatch,
    SkillRequirement,
    WorkerSkillProfile,
)

NEUTRAL_SCORE = 50
MAX_PROFICIENCY = 5

INTEREST_POINTS = {
    InterestLevel.HIGH: 100,
    InterestLevel.MEDIUM: 60,
    InterestLevel.LOW: 30,
    InterestLevel.NONE: 0,
}
EAGER_LEARNER_BONUS = 20
NOVICE_MAX_LEVEL = 2

WORKLOAD_PENALTY_PER_ITEM = 20

SENIORITY_TIERS = {
    "owner": 5,
    "admin": 4,
    "lead": 4,
    "senior": 4,
    "developer": 3,
    "standard": 3,
    "member": 2,
    "intern": 1,
}
UNKNOWN_ROLE_TIER = 2
NO_MEMBERSHIP_RAW = 1.0
EXPERIENCE_MAX_RAW = 6.0
DAYS_PER_MONTH = 30


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (Python's round() goes to even)."""
    return int(math.floor(value + 0.5))


def clamp_score(value: int) -> int:
    return max(0, min(100, value))


def _level(value) -> int:
    try:
        return max(0, min(MAX_PROFICIENCY, int(value)))
    except (TypeError, ValueError):
        return 0


def neutral_profile(worker_id: str, skill_name: str) -> WorkerSkillProfile:
    return WorkerSkillProfile(worker_id=worker_id, skill_name=skill_name)


def is_learning_match(proficiency: int, wants_to_learn: bool, interest: InterestLevel) -> bool:
    """Novice, eager and highly interested: the learning-opportunity pattern."""
    return proficiency <= NOVICE_MAX_LEVEL and wants_to_learn and interest == InterestLevel.HIGH


def skill_contribution(proficiency: int, requirement: SkillRequirement) -> float:
    weight = requirement.weight
    minimum = _level(requirement.min_proficiency)
    if proficiency >= minimum:
        return float(proficiency * weight)
    return (proficiency / minimum) * weight


def skill_score(requirements: list[SkillRequirement], levels: list[int]) -> int:
    """Weighted proficiency against requirements, normalized to 0-100. Neutral with no requirements."""
    if not requirements:
        return NEUTRAL_SCORE
    total = 0.0
    maximum = 0
    for requirement, level in zip(requirements, levels):
        total += skill_contribution(_level(level), requirement)
        maximum += MAX_PROFICIENCY * requirement.weight
    if maximum <= 0:
        return NEUTRAL_SCORE
    return clamp_score(round_half_up(total / maximum * 100))


def interest_points(interest: InterestLevel, wants_to_learn: bool, proficiency: int) -> int:
    points = INTEREST_POINTS[InterestLevel.parse(interest)]
    if wants_to_learn and proficiency <= NOVICE_MAX_LEVEL:
        points += EAGER_LEARNER_BONUS
    return min(points, 100)


def interest_score(profiles: list[WorkerSkillProfile]) -> int:
    """Mean interest across the requirement profiles. Neutral with no requirements."""
    if not profiles:
        return NEUTRAL_SCORE
    total = sum(
        interest_points(p.interest_level, p.wants_to_learn is True, _level(p.proficiency_level))
        for p in profiles
    )
    return clamp_score(round_half_up(total / len(profiles)))


def workload_score(in_flight: int) -> int:
    return max(0, 100 - WORKLOAD_PENALTY_PER_ITEM * max(0, int(in_flight)))


def months_since(joined_at: str, now: datetime) -> int:
    """Whole 30-day periods between joined_at and now. Unparseable dates count as 0."""
    if not joined_at:
        return 0
    try:
        joined = datetime.fromisoformat(joined_at.replace("Z", "+00:00"))
    except ValueError:
        return 0
    if joined.tzinfo is None:
        joined = joined.replace(tzinfo=timezone.utc)
    days = (now - joined).total_seconds() / 86400
    return max(0, math.floor(days / DAYS_PER_MONTH))


def experience_raw(membership: Membership | None, now: datetime) -> float:
    """Seniority tier plus up to one point of tenure."""
    if membership is None:
        return NO_MEMBERSHIP_RAW
    base = SENIORITY_TIERS.get((membership.role or "").strip().lower(), UNKNOWN_ROLE_TIER)
    tenure_bonus = min(months_since(membership.joined_at, now) / 12, 1)
    return base + tenure_bonus


def experience_score(membership: Membership | None, now: datetime) -> int:
    return clamp_score(round_half_up(experience_raw(membership, now) / EXPERIENCE_MAX_RAW * 100))


def score_candidate(
    worker_id: str,
    requirements: list[SkillRequirement],
    profiles: dict[str, WorkerSkillProfile],
    in_flight: int,
    membership: Membership | None,
    now: datetime,
) -> Candidate:
    """Compute the four component scores, reasons and per-skill detail for one worker.

    `profiles` maps lowercase skill name -> this worker's profile; absent
    skills score as a neutral profile. The weighted total is filled in by
    skillmatch.weights.aggregate().
    """
    reasons: list[str] = []
    matches: list[SkillMatch] = []
    matched_profiles: list[WorkerSkillProfile] = []
    levels: list[int] = []
    learning = False

    for requirement in requirements:
        profile = profiles.get(requirement.skill_name.lower()) or neutral_profile(
            worker_id, requirement.skill_name)
        level = _level(profile.proficiency_level)
        interest = InterestLevel.parse(profile.interest_level)
        wants_to_learn = profile.wants_to_learn is True
        minimum = _level(requirement.min_proficiency)
        levels.append(level)
        matched_profiles.append(profile)
        matches.append(SkillMatch(
            skill=requirement.skill_name,
            worker_level=level,
            required_level=minimum,
            interest=interest.value,
            wants_to_learn=wants_to_learn,
        ))

        if level >= minimum:
            reasons.append(f"Has {requirement.skill_name} ({level}/5)")
        elif level > 0:
            reasons.append(f"Learning {requirement.skill_name} ({level}/{minimum})")

        if is_learning_match(level, wants_to_learn, interest):
            learning = True
            reasons.append(f"Eager to learn {requirement.skill_name} (growth opportunity)")
        elif interest == InterestLevel.HIGH:
            reasons.append(f"High interest in {requirement.skill_name}")

    in_flight = max(0, int(in_flight))
    reasons.append("No current tickets" if in_flight == 0 else f"{in_flight} active tickets")

    return Candidate(
        worker_id=worker_id,
        worker_name=(membership.name if membership and membership.name else "Unknown"),
        skill_score=skill_score(requirements, levels),
        interest_score=interest_score(matched_profiles),
        workload_score=workload_score(in_flight),
        experience_score=experience_score(membership, now),
        reasons=reasons,
        skill_matches=matches,
        learning_opportunity=learning,
    )


def matches_learning_pattern(candidate: Candidate) -> bool:
    """True if any scored skill shows the learning-opportunity pattern."""
    return any(
        is_learning_match(m.worker_level, m.wants_to_learn, InterestLevel.parse(m.interest))
        for m in candidate.skill_matches
    )

