"""
PawMatch engine CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Open the SQLite document store.
  4. Run the action (schema init, seed import, scoring, grouping, ...).
  5. Report the result to stdout; errors go to stderr with exit code 1.

Install and run::

    pip install -e .
    pawmatch --help
    pawmatch init-db
    pawmatch validate-config
    pawmatch import-seed --file data/seed/demo.json
    pawmatch score PET_ID USER_ID
    pawmatch recommend USER_ID --limit 5
    pawmatch applications SHELTER_UID
    pawmatch thread-id PET_ID ADOPTER_ID SHELTER_ID
    pawmatch apply PET_ID USER_ID
    pawmatch set-status APP_ID approved --actor SHELTER_UID
    pawmatch metadata breeds Dog
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="pawmatch",
    help="PawMatch pet adoption matching engine.",
    add_completion=False,
)

metadata_app = typer.Typer(help="Breed, type and color vocabularies.", add_completion=False)
app.add_typer(metadata_app, name="metadata")

_CONFIG_OPTION = typer.Option(None, "--config", help="Path to TOML config file.")


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from pydantic import ValidationError

    from pawmatch.config import load_config

    try:
        return load_config(Path(config_path) if config_path else None)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except (ValidationError, ValueError) as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    from pawmatch.utils.logging import configure_logging
    configure_logging(config.logging)


def _fail(message: str) -> typer.Exit:
    typer.echo(f"[ERROR] {message}", err=True)
    return typer.Exit(code=1)


@contextmanager
def _open_store(config, db_path: Optional[str] = None):
    """Yield a ``SqliteDocumentStore`` on a schema-initialised connection."""
    from pawmatch.db.connection import connection_for
    from pawmatch.db.document_store import SqliteDocumentStore
    from pawmatch.db.schema import apply_schema

    with connection_for(config.database, db_path) as conn:
        apply_schema(conn)
        yield SqliteDocumentStore(conn)


def _load_user_or_exit(store, uid: str):
    from pawmatch.live.plans import USERS
    from pawmatch.models.user import UserRecord

    data = store.get(USERS, uid)
    if data is None:
        raise _fail(f"No user '{uid}'.")
    return UserRecord.from_document(uid, data)


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(
        None,
        "--db-path",
        help="Override DB path from config (e.g. data/db/test.db).",
    ),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Create the document store tables and declare the feed indexes.

    Safe to run repeatedly.
    """
    from pawmatch.db.schema import ALL_TABLE_NAMES
    from pawmatch.live.plans import required_indexes

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target}")

    with _open_store(config, target) as store:
        indexes = required_indexes()
        for collection, fields in indexes:
            store.declare_index(collection, fields)

    typer.echo(f"  Tables:  {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo(f"  Indexes: {len(indexes)} declared.")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = _CONFIG_OPTION,
    show_full: bool = typer.Option(False, "--full", help="Print the full config as JSON."),
) -> None:
    """Validate the configuration and print the main values."""
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:     {config.database.db_path}")
    typer.echo(f"  Recommendations:   {config.matching.recommendation_limit} "
               f"(floor {config.matching.min_match_percent}%)")
    typer.echo(f"  Feed limits:       adopter {config.feeds.adopter_limit}, "
               f"staff {config.feeds.staff_limit}")
    typer.echo(f"  Metadata API:      {config.metadata.base_url} "
               f"(credentials {'set' if config.metadata.client_id else 'missing'})")
    typer.echo(f"  Log level:         {config.logging.level}")
    typer.echo(f"  Debug mode:        {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        dumped = config.model_dump()
        dumped["metadata"]["client_secret"] = "***" if config.metadata.client_secret else None
        typer.echo(json.dumps(dumped, indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("import-seed")
def import_seed_cmd(
    seed_file: str = typer.Option(..., "--file", "-f", help="JSON seed file with users/pets/applications."),
    config_path: Optional[str] = _CONFIG_OPTION,
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate only; write nothing."),
) -> None:
    """Import users, pets and applications from a JSON seed file."""
    from pawmatch.ingestion.seed_loader import import_seed, load_seed_file

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        seed = load_seed_file(Path(seed_file))
    except (FileNotFoundError, ValueError) as exc:
        raise _fail(f"Seed import failed:\n{exc}")

    for collection, docs in seed.documents.items():
        typer.echo(f"  Validated {len(docs)} {collection}.")

    if dry_run:
        typer.echo("[DRY RUN] Nothing written.")
        return

    with _open_store(config) as store:
        counts = import_seed(store, seed)

    typer.echo(f"  Imported {sum(counts.values())} document(s).")
    typer.echo("[OK] Seed imported.")


@app.command("score")
def score(
    pet_id: str = typer.Argument(..., help="Pet document id."),
    user_id: str = typer.Argument(..., help="Adopter uid whose preferences are used."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Explain how well a pet matches an adopter's preferences."""
    from pawmatch.live.plans import PETS
    from pawmatch.matching.scorer import describe_match_score, evaluate_match, match_badge
    from pawmatch.models.pet import PetListing

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_store(config) as store:
        user = _load_user_or_exit(store, user_id)
        data = store.get(PETS, pet_id)
        pet = PetListing.from_document(pet_id, data) if data is not None else None

    prefs = user.preferences
    result = evaluate_match(pet, prefs)
    has_prefs = prefs is not None and not prefs.is_empty

    typer.echo(describe_match_score(pet, prefs))
    typer.echo("")
    typer.echo(f"Badge: {match_badge(result.percent, has_prefs).label}")


@app.command("recommend")
def recommend_cmd(
    user_id: str = typer.Argument(..., help="Adopter uid."),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Override the recommendation limit."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Print an adopter's dashboard stats and recommended pets."""
    from pawmatch.live.merger import ViewState
    from pawmatch.live.plans import (
        APPLICATIONS_FAILURE_MESSAGE,
        APPLICATIONS_SORT,
        PETS_FAILURE_MESSAGE,
        PETS_SORT,
        application_feed_plan,
        open_feed,
        pet_feed_plan,
    )
    from pawmatch.matching.scorer import match_tier
    from pawmatch.models.application import Application
    from pawmatch.models.pet import PetListing
    from pawmatch.recommendations.dashboard import build_adopter_dashboard
    from pawmatch.taxonomy.pet_taxonomy import Role
    from pawmatch.utils.time_utils import from_epoch_seconds

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_store(config) as store:
        user = _load_user_or_exit(store, user_id)
        pet_plan = pet_feed_plan(Role.ADOPTER, user_id, config.feeds.adopter_limit, config.feeds.staff_limit)

        with open_feed(store, [pet_plan], PETS_SORT, PETS_FAILURE_MESSAGE) as pets_feed, \
                open_feed(store, [application_feed_plan(Role.ADOPTER, user_id)],
                          APPLICATIONS_SORT, APPLICATIONS_FAILURE_MESSAGE) as apps_feed:
            for view in (pets_feed.view, apps_feed.view):
                if view.state == ViewState.FAILED:
                    raise _fail(view.error or "Failed to load.")
            pets = pets_feed.view.records(PetListing.from_document)
            applications = apps_feed.view.records(Application.from_document)

    dashboard = build_adopter_dashboard(
        pets,
        applications,
        user.preferences,
        limit=config.matching.recommendation_limit if limit is None else limit,
        min_percent=config.matching.min_match_percent,
        recent_limit=config.feeds.recent_applications_limit,
    )

    stats = dashboard.stats
    typer.echo(f"Applications: {stats['submitted']} submitted, "
               f"{stats['approved']} approved, {stats['closed']} closed")
    for application in dashboard.recent_applications:
        submitted = from_epoch_seconds(application.created_at)
        when = submitted.strftime("%Y-%m-%d") if submitted else "-"
        typer.echo(f"  {application.pet_name or application.pet_id}  "
                   f"[{application.status.value}]  {when}")
    typer.echo("")

    if not dashboard.recommendations:
        if dashboard.has_available_pets:
            typer.echo("No pets meet your match threshold yet.")
        else:
            typer.echo("No pets available right now.")
        return

    for item in dashboard.recommendations:
        name = item.pet.name or item.pet.id
        if item.is_scored:
            typer.echo(f"  {item.match_percent:>3}%  {name}  [{match_tier(item.match_percent).value}]")
        else:
            typer.echo(f"     -  {name}")


@app.command("applications")
def applications_cmd(
    uid: str = typer.Argument(..., help="Shelter or admin uid."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Show incoming applications grouped by pet, best matches first."""
    from pawmatch.live.merger import ViewState
    from pawmatch.live.plans import (
        APPLICATIONS_FAILURE_MESSAGE,
        APPLICATIONS_SORT,
        PETS,
        USERS,
        application_feed_plan,
        open_feed,
    )
    from pawmatch.matching.scorer import match_badge
    from pawmatch.models.application import Application
    from pawmatch.models.pet import PetListing
    from pawmatch.models.user import UserRecord
    from pawmatch.recommendations.grouper import group_applications
    from pawmatch.taxonomy.pet_taxonomy import Role
    from pawmatch.utils.time_utils import from_epoch_seconds

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_store(config) as store:
        user = _load_user_or_exit(store, uid)
        if user.role == Role.ADOPTER:
            raise _fail(f"User '{uid}' is an adopter; use 'recommend' instead.")

        plan = application_feed_plan(user.role, uid)
        with open_feed(store, [plan], APPLICATIONS_SORT, APPLICATIONS_FAILURE_MESSAGE) as feed:
            if feed.view.state == ViewState.FAILED:
                raise _fail(feed.view.error or "Failed to load.")
            applications = feed.view.records(Application.from_document)

        pets: dict[str, PetListing] = {}
        applicants: dict[str, UserRecord] = {}
        for application in applications:
            if application.pet_id not in pets:
                data = store.get(PETS, application.pet_id)
                if data is not None:
                    pets[application.pet_id] = PetListing.from_document(application.pet_id, data)
            if application.applicant_id not in applicants:
                data = store.get(USERS, application.applicant_id)
                if data is not None:
                    applicants[application.applicant_id] = UserRecord.from_document(application.applicant_id, data)

    grouped = group_applications(applications, pets, applicants)
    if grouped.is_empty:
        typer.echo("No applications yet.")
        return

    for title, groups in (("Active", grouped.active), ("Previous", grouped.previous)):
        if not groups:
            continue
        typer.echo(f"{title}:")
        for group in groups:
            typer.echo(f"  {group.pet_name} ({len(group.applications)})")
            for item in group.applications:
                badge = match_badge(item.match_percent, item.has_preferences)
                submitted = from_epoch_seconds(item.application.created_at)
                when = submitted.strftime("%Y-%m-%d") if submitted else "-"
                typer.echo(f"    {badge.label:<16} {item.applicant_name}  "
                           f"[{item.application.status.value}]  {when}")
        typer.echo("")


@app.command("thread-id")
def thread_id(
    pet_id: str = typer.Argument(...),
    adopter_id: str = typer.Argument(...),
    shelter_id: str = typer.Argument(...),
) -> None:
    """Print the conversation thread id for a pet/adopter/shelter triple."""
    from pawmatch.matching.thread_identity import is_safe_component, thread_id_for

    for value in (pet_id, adopter_id, shelter_id):
        if not is_safe_component(value):
            raise _fail(f"'{value}' contains the thread id separator.")
    typer.echo(thread_id_for(pet_id, adopter_id, shelter_id))


# ── Workflow ──────────────────────────────────────────────────────────────────

@app.command("apply")
def apply_cmd(
    pet_id: str = typer.Argument(..., help="Pet document id."),
    user_id: str = typer.Argument(..., help="Applying adopter uid."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Submit an adoption application (no-op if one already exists)."""
    from pawmatch.exceptions import WorkflowError
    from pawmatch.live.plans import PETS
    from pawmatch.models.pet import PetListing
    from pawmatch.workflow.applications import ApplicationWorkflow
    from pawmatch.workflow.notifications import SystemNotifier

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_store(config) as store:
        adopter = _load_user_or_exit(store, user_id)
        data = store.get(PETS, pet_id)
        if data is None:
            raise _fail(f"No pet '{pet_id}'.")

        workflow = ApplicationWorkflow(store, SystemNotifier.from_config(store, config.notifications))
        try:
            application = workflow.submit(PetListing.from_document(pet_id, data), adopter)
        except WorkflowError as exc:
            raise _fail(str(exc))

    typer.echo(f"[OK] Application {application.id} is {application.status.value}.")


@app.command("set-status")
def set_status_cmd(
    app_id: str = typer.Argument(..., help="Application document id."),
    status: str = typer.Argument(..., help="approved | rejected | submitted"),
    actor_id: Optional[str] = typer.Option(None, "--actor", help="Shelter or admin uid making the decision."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """Approve, reject, reopen or revoke an application."""
    from pawmatch.exceptions import WorkflowError
    from pawmatch.workflow.applications import ApplicationWorkflow
    from pawmatch.workflow.notifications import SystemNotifier

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_store(config) as store:
        actor = _load_user_or_exit(store, actor_id) if actor_id else None
        workflow = ApplicationWorkflow(store, SystemNotifier.from_config(store, config.notifications), actor)
        try:
            application = workflow.set_status(app_id, status)
        except WorkflowError as exc:
            raise _fail(str(exc))

    typer.echo(f"[OK] Application {application.id} is {application.status.value}.")
    outcome = workflow.last_notification
    if outcome is not None and not outcome.delivered:
        typer.echo(f"[WARN] Thread {outcome.thread_id} was not notified: {outcome.error}")


# ── Metadata ──────────────────────────────────────────────────────────────────

@contextmanager
def _metadata_client(config_path: Optional[str]):
    from pawmatch.ingestion.petfinder_client import PetfinderClient

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    with PetfinderClient.from_config(config.metadata) as client:
        yield client


@metadata_app.command("types")
def metadata_types(config_path: Optional[str] = _CONFIG_OPTION) -> None:
    """List animal types."""
    with _metadata_client(config_path) as client:
        for name in client.get_types():
            typer.echo(name)


@metadata_app.command("breeds")
def metadata_breeds(
    animal_type: str = typer.Argument(..., help="Animal type, e.g. Dog."),
    config_path: Optional[str] = _CONFIG_OPTION,
) -> None:
    """List breeds for an animal type."""
    with _metadata_client(config_path) as client:
        for name in client.get_breeds(animal_type):
            typer.echo(name)


@metadata_app.command("colors")
def metadata_colors(config_path: Optional[str] = _CONFIG_OPTION) -> None:
    """List coat colors."""
    with _metadata_client(config_path) as client:
        for name in client.get_colors():
            typer.echo(name)


@metadata_app.command("clear-cache")
def metadata_clear_cache(config_path: Optional[str] = _CONFIG_OPTION) -> None:
    """Drop all cached vocabularies."""
    with _metadata_client(config_path) as client:
        client.clear_cache()
    typer.echo("[OK] Metadata cache cleared.")


if __name__ == "__main__":
    app()
