"""Shared test fixtures."""

from datetime import datetime, timedelta, timezone

import pytest
import yaml

from skillmatch.config import EngineConfig
from skillmatch.engine import AssignmentEngine
from skillmatch.models import (
    Importance,
    InterestLevel,
    Membership,
    Priority,
    SkillRequirement,
    WorkerSkillProfile,
    WorkItem,
)
from skillmatch.store import TinyDBStore, close_all


ORG = "acme"
POOL = "circle-2"

CONFIG_YAML = {
    "project": {
        "name": "Test Project",
        "org": ORG,
    },
    "store": {
        "backend": "tinydb",
        "path": "data/skillmatch.json",
        "timeout_seconds": 2.0,
        "retry_backoff_seconds": 0,
    },
    "engine": {"max_workers": 4},
    "feedback": {"process_interval_seconds": 60},
    "retention": {"feedback_days": 30, "audit_days": 90},
}


def iso_days_ago(days: float) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()


@pytest.fixture(autouse=True)
def _close_dbs():
    yield
    close_all()


@pytest.fixture
def tmp_project(tmp_path):
    """Create a temporary project directory with skillmatch.yaml."""
    (tmp_path / "skillmatch.yaml").write_text(yaml.dump(CONFIG_YAML))
    (tmp_path / "data").mkdir()
    return tmp_path


@pytest.fixture
def config(tmp_project):
    """Load an EngineConfig from the temp project."""
    return EngineConfig.load(tmp_project)


@pytest.fixture
def store(config):
    """Empty TinyDBStore in the temp project."""
    return TinyDBStore(config.store_path)


@pytest.fixture
def engine(store, config):
    eng = AssignmentEngine(store, config)
    yield eng
    eng.close()


@pytest.fixture
def add_worker(store):
    """Factory fixture: membership, in-flight count, pool entry and skill profiles.

    skills maps skill name -> (proficiency, interest, wants_to_learn).
    """
    pool_members: dict[str, list[str]] = {}

    def _add(worker_id, role="developer", months=0, in_flight=0, skills=None,
             name=None, pool=POOL, org=ORG, member=True):
        if member:
            store.add_membership(Membership(
                worker_id=worker_id,
                org_id=org,
                role=role,
                joined_at=iso_days_ago(months * 30 + 1) if months else iso_days_ago(0),
                name=name or worker_id.title(),
            ))
        if in_flight:
            store.set_in_flight(worker_id, in_flight)
        for skill, (level, interest, wants) in (skills or {}).items():
            store.upsert_profile(WorkerSkillProfile(
                worker_id=worker_id,
                skill_name=skill,
                proficiency_level=level,
                interest_level=InterestLevel(interest),
                wants_to_learn=wants,
            ))
        if pool:
            members = pool_members.setdefault(pool, [])
            members.append(worker_id)
            store.set_pool(pool, list(members), org)
        return worker_id
    return _add


@pytest.fixture
def add_item(store):
    """Factory fixture for work items. skills is a list of (name, importance, min)."""
    def _add(item_id="T-1", title="", description="", priority="medium", skills=None):
        item = WorkItem(
            id=item_id,
            title=title,
            description=description,
            priority=Priority.parse(priority),
            skills=[
                SkillRequirement(skill_name=n, importance=Importance(imp), min_proficiency=m)
                for n, imp, m in (skills or [])
            ],
        )
        store.add_item(item)
        return item
    return _add
