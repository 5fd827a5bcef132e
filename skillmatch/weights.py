"""Priority-dependent weight profiles and the weighted total."""

from dataclasses import dataclass

from skillmatch.models import Candidate, Priority
from skillmatch.scoring import clamp_score, round_half_up

LEARNING_BONUS = 10
LEARNING_BONUS_PRIORITIES = (Priority.MEDIUM, Priority.LOW)
LEARNING_BONUS_REASON = f"Learning opportunity bonus +{LEARNING_BONUS}"


@dataclass(frozen=True)
class WeightProfile:
    skill: float
    workload: float
    experience: float
    interest: float
    # Summation order of the terms. Float addition is not associative, and
    # recorded totals were produced in this order.
    order: tuple[str, ...] = ("skill", "workload", "experience", "interest")

    def total(self) -> float:
        return self.skill + self.workload + self.experience + self.interest

    def terms(self) -> list[tuple[str, float]]:
        return [(name, getattr(self, name)) for name in self.order]


_URGENT_ORDER = ("skill", "workload", "experience", "interest")
_ROUTINE_ORDER = ("skill", "interest", "workload", "experience")

WEIGHT_PROFILES: dict[Priority, WeightProfile] = {
    Priority.CRITICAL: WeightProfile(skill=0.70, workload=0.20, experience=0.10, interest=0.00,
                                     order=_URGENT_ORDER),
    Priority.HIGH: WeightProfile(skill=0.50, workload=0.30, experience=0.15, interest=0.05,
                                 order=_URGENT_ORDER),
    Priority.MEDIUM: WeightProfile(skill=0.40, workload=0.25, experience=0.10, interest=0.25,
                                   order=_ROUTINE_ORDER),
    Priority.LOW: WeightProfile(skill=0.40, workload=0.25, experience=0.10, interest=0.25,
                                order=_ROUTINE_ORDER),
}


def select_weights(priority) -> WeightProfile:
    """Weight profile for a priority. Unknown priorities use the medium profile."""
    return WEIGHT_PROFILES[Priority.parse(priority)]


def weighted_total(candidate: Candidate, weights: WeightProfile) -> int:
    components = {
        "skill": candidate.skill_score,
        "workload": candidate.workload_score,
        "experience": candidate.experience_score,
        "interest": candidate.interest_score,
    }
    total = 0.0
    for name, weight in weights.terms():
        total += components[name] * weight
    return clamp_score(round_half_up(total))


def aggregate(candidate: Candidate, weights: WeightProfile, priority) -> int:
    """Set candidate.total_score and return it.

    On medium/low priority a candidate flagged as a learning opportunity
    gets the bonus once, capped at 100. Calling this again recomputes from
    the components, so the bonus never stacks.
    """
    total = weighted_total(candidate, weights)
    if candidate.learning_opportunity and Priority.parse(priority) in LEARNING_BONUS_PRIORITIES:
        total = min(100, total + LEARNING_BONUS)
        if LEARNING_BONUS_REASON not in candidate.reasons:
            candidate.reasons.append(LEARNING_BONUS_REASON)
    candidate.total_score = total
    return total
