"""Capability extraction — which skills a work item needs."""

from abc import ABC, abstractmethod

from skillmatch.exceptions import ItemNotFound
from skillmatch.log import get_logger
from skillmatch.models import Importance, SkillRequirement, WorkItem

logger = get_logger(__name__)

# Skill -> lowercase keywords searched for as substrings of title + description.
DEFAULT_SKILL_KEYWORDS: dict[str, list[str]] = {
    "react": ["react", "component", "jsx", "tsx", "hooks", "usestate", "useeffect"],
    "typescript": ["typescript", "types", "interface", "ts", ".tsx"],
    "nextjs": ["next.js", "nextjs", "next", "app router", "pages"],
    "nodejs": ["node", "express", "api", "backend", "server"],
    "postgresql": ["postgres", "sql", "database", "prisma", "query"],
    "docker": ["docker", "container", "dockerfile", "compose"],
    "swift": ["ios", "swift", "swiftui", "xcode", "apple"],
    "kotlin": ["android", "kotlin", "jetpack"],
    "python": ["python", "django", "flask", "pandas"],
    "testing": ["test", "jest", "cypress", "e2e", "unit test"],
}

INFERRED_MIN_PROFICIENCY = 2


class TextSkillInferencer(ABC):
    """Turns free text into skill requirements. Swap in a smarter one without touching the scorer."""

    @abstractmethod
    def infer(self, text: str) -> list[SkillRequirement]:
        ...


class KeywordSkillInferencer(TextSkillInferencer):
    """Case-insensitive substring match against a skill keyword dictionary."""

    def __init__(self, keywords: dict[str, list[str]] | None = None,
                 extra_keywords: dict[str, list[str]] | None = None):
        merged = {skill: list(kws) for skill, kws in (keywords or DEFAULT_SKILL_KEYWORDS).items()}
        for skill, kws in (extra_keywords or {}).items():
            existing = merged.setdefault(skill, [])
            existing.extend(kw for kw in kws if kw not in existing)
        self.keywords = {
            skill.lower(): [kw.lower() for kw in kws] for skill, kws in merged.items()
        }

    def infer(self, text: str) -> list[SkillRequirement]:
        haystack = (text or "").lower()
        if not haystack.strip():
            return []
        return [
            SkillRequirement(
                skill_name=skill,
                importance=Importance.PREFERRED,
                min_proficiency=INFERRED_MIN_PROFICIENCY,
            )
            for skill, kws in self.keywords.items()
            if any(kw and kw in haystack for kw in kws)
        ]


class CapabilityExtractor:
    """Explicit requirements win; otherwise infer from the item's text."""

    def __init__(self, store, inferencer: TextSkillInferencer | None = None):
        self.store = store
        self.inferencer = inferencer or KeywordSkillInferencer()

    def extract(self, work_item_id: str) -> list[SkillRequirement]:
        """Required skills for a work item. Raises ItemNotFound for unknown ids."""
        item = self.store.get_item(work_item_id)
        if item is None:
            raise ItemNotFound(work_item_id)
        return self.requirements_for(item)

    def requirements_for(self, item: WorkItem) -> list[SkillRequirement]:
        """Same as extract() for an already-loaded item."""
        if item.skills:
            return list(item.skills)

        inferred = self.inferencer.infer(f"{item.title} {item.description}")
        if inferred:
            logger.debug("Inferred skills for %s: %s", item.id,
                         [r.skill_name for r in inferred])
        else:
            logger.debug("No skills found for %s; scoring is skill-agnostic", item.id)
        return inferred
