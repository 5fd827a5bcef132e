#!/usr/bin/env python3
"""skillmatch — CLI for the work-item assignment engine."""

import signal
import sys
import time
from pathlib import Path

import click
import yaml

from skillmatch.access import StoreAccess
from skillmatch.audit import AuditRecorder
from skillmatch.config import EngineConfig
from skillmatch.engine import AssignmentEngine
from skillmatch.exceptions import (
    AssignmentUnavailable, AuditWriteFailed, ConfigError, EmptyPoolError, ItemNotFound,
    NoDevelopersAvailable, ValidationError,
)
from skillmatch.feedback import FeedbackLoop, FeedbackProcessor, declare_skill
from skillmatch.log import setup_logging
from skillmatch.remote_store import HttpStore
from skillmatch.store import SkillStore, TinyDBStore

ENGINE_ERRORS = (
    ItemNotFound, EmptyPoolError, NoDevelopersAvailable, AssignmentUnavailable,
    AuditWriteFailed, ValidationError,
)


def build_store(config: EngineConfig) -> SkillStore:
    """The concrete store named by store.backend."""
    if config.store.backend == "http":
        return HttpStore(config.store.base_url, api_token=config.store.api_token,
                         timeout=config.store.timeout_seconds)
    return TinyDBStore(config.store_path)


def _load_project(ctx) -> tuple[EngineConfig, SkillStore]:
    """Load config from --project-dir (or cwd) and open its store. Exits 1 on config errors."""
    project_dir = ctx.obj["project_dir"] or Path.cwd()
    try:
        config = EngineConfig.load(project_dir)
    except ConfigError as e:
        click.echo(f"Config error: {e}", err=True)
        sys.exit(1)
    if config.logging.file:
        setup_logging(level="DEBUG" if ctx.obj["verbose"] else config.logging.level,
                      log_file=config.project_dir / config.logging.file)
    store = build_store(config)
    if isinstance(store, HttpStore):
        ctx.call_on_close(store.close)
    return config, store


def _guarded(config: EngineConfig, store: SkillStore) -> StoreAccess:
    access = StoreAccess(store, timeout=config.store.timeout_seconds,
                         backoff=config.store.retry_backoff_seconds)
    click.get_current_context().call_on_close(access.close)
    return access


def _fail(e: Exception) -> None:
    click.echo(f"Error: {e}", err=True)
    sys.exit(1)


@click.group()
@click.option("--project-dir", type=click.Path(exists=True, path_type=Path), default=None,
              help="Project directory (defaults to cwd)")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, project_dir, verbose):
    """skillmatch — pick the best worker for a work item, and explain why."""
    ctx.ensure_object(dict)
    ctx.obj["project_dir"] = project_dir
    ctx.obj["verbose"] = verbose
    setup_logging(level="DEBUG" if verbose else "INFO")


@cli.command()
@click.pass_context
def status(ctx):
    """Show project configuration and store status."""
    config, store = _load_project(ctx)
    click.echo(f"Project: {config.name}")
    click.echo(f"Org:     {config.org}")
    if config.store.backend == "http":
        click.echo(f"Store:   http ({config.store.base_url})")
    else:
        click.echo(f"Store:   tinydb ({config.store_path})")

    guarded = _guarded(config, store)
    try:
        usage = guarded.get_usage(config.org)
        pending = guarded.list_feedback(processed=False)
    except AssignmentUnavailable as e:
        _fail(e)
    click.echo(f"Assignments: {usage.get('assignments', 0)}")
    click.echo(f"Pending feedback: {len(pending)}")


@cli.command(name="import")
@click.argument("fixture", type=click.Path(exists=True, path_type=Path))
@click.pass_context
def import_fixture(ctx, fixture):
    """Load items, pools, members, profiles and workload from a YAML file."""
    _, store = _load_project(ctx)
    if not isinstance(store, TinyDBStore):
        click.echo("Error: import requires store.backend 'tinydb'", err=True)
        sys.exit(1)
    try:
        data = yaml.safe_load(fixture.read_text()) or {}
    except yaml.YAMLError as e:
        click.echo(f"Error: invalid YAML in {fixture}: {e}", err=True)
        sys.exit(1)
    if not isinstance(data, dict):
        click.echo(f"Error: {fixture} must be a YAML mapping", err=True)
        sys.exit(1)

    counts = store.import_fixture(data)
    click.echo("Imported: " + ", ".join(f"{n} {k}" for k, n in counts.items()))


@cli.command()
@click.argument("item_id")
@click.option("--pool", "pool_id", required=True, help="Delivery group to choose from")
@click.option("--org", "org_id", default=None, help="Organizational unit (defaults to project.org)")
@click.option("--record/--no-record", default=True, help="Write the decision to the audit log")
@click.pass_context
def assign(ctx, item_id, pool_id, org_id, record):
    """Pick the best worker for a work item."""
    config, store = _load_project(ctx)
    org_id = org_id or config.org
    engine = AssignmentEngine(store, config)
    ctx.call_on_close(engine.close)

    record_id = None
    try:
        if record:
            decision, record_id = engine.assign_and_record(item_id, pool_id, org_id)
        else:
            decision = engine.assign_work_item(item_id, pool_id, org_id)
    except ENGINE_ERRORS as e:
        _fail(e)

    name = decision.winner_name or decision.winner_id
    click.echo(f"Assigned {decision.work_item_id} to {name} ({decision.winner_id})")
    click.echo(f"Type:   {decision.assignment_type.value}")
    click.echo(f"Reason: {decision.rationale}")
    if decision.candidates:
        click.echo("\nCandidates:")
        for c in decision.candidates:
            flag = " *learning*" if c.learning_opportunity else ""
            click.echo(f"  {c.worker_id:<16} {c.total_score:>3}  "
                       f"skill={c.skill_score} interest={c.interest_score} "
                       f"workload={c.workload_score} experience={c.experience_score}{flag}")
    if record_id:
        click.echo(f"\nRecorded: {record_id}")


@cli.command()
@click.argument("item_id")
@click.pass_context
def history(ctx, item_id):
    """Show recorded assignment decisions for a work item, newest first."""
    config, store = _load_project(ctx)
    try:
        records = AuditRecorder(_guarded(config, store)).history(item_id)
    except AssignmentUnavailable as e:
        _fail(e)

    if not records:
        click.echo(f"No assignments recorded for {item_id}.")
        return
    for r in records:
        line = f"{r['id']}  {r.get('recorded_at', '')[:19]}  {r['winner_id']}  {r['assignment_type']}  score={r['score']}"
        if r.get("overridden_by"):
            line += f"  (overridden by {r['overridden_by']}: {r.get('override_reason') or ''})"
        click.echo(line)


@cli.command()
@click.argument("record_id")
@click.option("--by", "overridden_by", required=True, help="Who is overriding")
@click.option("--reason", required=True, help="Why the decision is overridden")
@click.option("--assignee", default=None, help="Worker the item goes to instead")
@click.pass_context
def override(ctx, record_id, overridden_by, reason, assignee):
    """Mark a recorded decision as a manual override."""
    config, store = _load_project(ctx)
    try:
        record = AuditRecorder(_guarded(config, store)).override(
            record_id, overridden_by, reason, new_winner_id=assignee)
    except ENGINE_ERRORS as e:
        _fail(e)
    click.echo(f"Record {record_id} overridden by {overridden_by} "
               f"(was {record['original_assignment_type']})")


@cli.command()
@click.argument("worker_id")
@click.argument("feedback_type")
@click.option("--item", "item_id", default=None, help="Work item the feedback is about")
@click.option("--skill", "skill_name", default=None, help="Skill (defaults to the item's skills)")
@click.option("--notes", default=None)
@click.pass_context
def feedback(ctx, worker_id, feedback_type, item_id, skill_name, notes):
    """Record feedback (ticket_completed, ticket_declined, ...) for a worker."""
    config, store = _load_project(ctx)
    loop = FeedbackLoop(_guarded(config, store))
    try:
        events = loop.record_feedback(worker_id, item_id, feedback_type, skill_name, notes)
    except ENGINE_ERRORS as e:
        _fail(e)
    if not events:
        click.echo("No skills to record feedback for.")
        return
    click.echo(f"Recorded {len(events)} event(s): " + ", ".join(e.skill_name for e in events))


@cli.command()
@click.argument("worker_id")
@click.argument("skill_name")
@click.option("--knows/--doesnt-know", default=None, help="Whether the worker knows the skill")
@click.option("--notes", default=None)
@click.pass_context
def scrum(ctx, worker_id, skill_name, knows, notes):
    """Quick skill signal from a standup."""
    config, store = _load_project(ctx)
    loop = FeedbackLoop(_guarded(config, store))
    try:
        loop.record_scrum_feedback(worker_id, skill_name, knows, notes)
    except ENGINE_ERRORS as e:
        _fail(e)
    if knows:
        click.echo(f"Recorded: {skill_name} - {worker_id} knows this skill")
    elif knows is False:
        click.echo(f"Recorded: {skill_name} - {worker_id} needs training")
    else:
        click.echo(f"Recorded: {skill_name} - no change for {worker_id}")


@cli.command(name="process-feedback")
@click.option("--watch", is_flag=True,
              help="Keep folding on feedback.process_interval_seconds until interrupted")
@click.pass_context
def process_feedback(ctx, watch):
    """Fold pending feedback events into skill profiles."""
    config, store = _load_project(ctx)
    loop = FeedbackLoop(_guarded(config, store))
    try:
        count = loop.apply_pending()
    except AssignmentUnavailable as e:
        _fail(e)
    click.echo(f"Processed {count} feedback event(s).")
    if not watch:
        return

    interval = config.feedback.process_interval_seconds
    processor = FeedbackProcessor(loop, interval)
    click.echo(f"Watching for feedback every {interval}s (Ctrl-C to stop)...")
    processor.start()

    def _shutdown(signum, frame):
        processor.stop()
        sys.exit(0)

    previous = signal.signal(signal.SIGTERM, _shutdown)
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        click.echo("\nShutting down...")
    finally:
        processor.stop()
        signal.signal(signal.SIGTERM, previous)
    click.echo("Feedback processor stopped.")


@cli.command()
@click.argument("worker_id")
@click.pass_context
def skills(ctx, worker_id):
    """Show a worker's skill profiles and feedback summary."""
    config, store = _load_project(ctx)
    guarded = _guarded(config, store)
    try:
        profiles = guarded.list_profiles(worker_id)
        summary = FeedbackLoop(guarded).summary(worker_id)
    except AssignmentUnavailable as e:
        _fail(e)

    if not profiles:
        click.echo(f"No skills recorded for {worker_id}.")
    for p in profiles:
        learn = " (wants to learn)" if p.wants_to_learn else ""
        click.echo(f"  {p.skill_name:<14} {p.proficiency_level}/5  interest={p.interest_level.value}"
                   f"  confidence={p.confidence:.2f}{learn}")
    if summary["summary"]:
        click.echo("\nFeedback:")
        for skill, counts in sorted(summary["summary"].items()):
            click.echo(f"  {skill:<14} +{counts['positive']} -{counts['negative']} ={counts['neutral']}")


@cli.command(name="skills-set")
@click.argument("worker_id")
@click.argument("skill_name")
@click.argument("level", type=int)
@click.option("--interest", default="medium", help="high, medium, low or none")
@click.option("--wants-to-learn", is_flag=True)
@click.pass_context
def skills_set(ctx, worker_id, skill_name, level, interest, wants_to_learn):
    """Declare a worker's proficiency (0-5) in a skill."""
    config, store = _load_project(ctx)
    try:
        action = declare_skill(_guarded(config, store), worker_id, skill_name, level,
                               interest=interest, wants_to_learn=wants_to_learn)
    except ENGINE_ERRORS as e:
        _fail(e)
    click.echo(f"Skill {skill_name} {action} for {worker_id} ({level}/5)")


@cli.command()
@click.option("--org", "org_id", default=None, help="Organizational unit (defaults to project.org)")
@click.pass_context
def usage(ctx, org_id):
    """Show per-organization usage counters."""
    config, store = _load_project(ctx)
    org_id = org_id or config.org
    try:
        counters = _guarded(config, store).get_usage(org_id)
    except AssignmentUnavailable as e:
        _fail(e)
    if not counters:
        click.echo(f"No usage recorded for {org_id}.")
        return
    click.echo(f"Usage for {org_id}:")
    for name, value in sorted(counters.items()):
        click.echo(f"  {name}: {value}")


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show what would be removed")
@click.pass_context
def housekeep(ctx, dry_run):
    """Clean up old feedback and audit records based on retention policies."""
    config, _ = _load_project(ctx)
    if config.store.backend != "tinydb":
        click.echo("Error: housekeeping requires store.backend 'tinydb'", err=True)
        sys.exit(1)

    from skillmatch.housekeeping import Housekeeper
    hk = Housekeeper(config.store_path, config.retention)

    if dry_run:
        click.echo("Dry run: retention policies")
        click.echo(f"  Feedback:    keep processed events {config.retention.feedback_days} days")
        click.echo(f"  Assignments: keep {config.retention.audit_days} days")
        return

    results = hk.run_all()
    total = sum(results.values())
    click.echo(f"Housekeeping complete: {total} records removed")
    for table, count in results.items():
        if count > 0:
            click.echo(f"  {table}: {count} removed")


if __name__ == "__main__":
    cli()
