"""cadence CLI: study, inspect and manage spaced-repetition progress."""

import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Any

import typer

from cadence.application.config import AppConfig, resolve_config
from cadence.domain.errors import CadenceError
from cadence.domain.models import DifficultyLevel, Outcome

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="cadence: spaced-repetition study sessions from YAML flashcard decks.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

LOG_LEVELS = {0: logging.ERROR, 1: logging.WARNING, 2: logging.INFO}

# ---------------------------------------------------------------------------
# Register subgroups
# ---------------------------------------------------------------------------

config_app = typer.Typer(help="Manage cadence configuration.")
app.add_typer(config_app, name="config")

progress_app = typer.Typer(help="Export and import study progress.", no_args_is_help=True)
app.add_typer(progress_app, name="progress")

DeckOption = Annotated[
    Path | None, typer.Option("--deck", "-d", help="YAML deck file or directory of decks.")
]
UserOption = Annotated[str | None, typer.Option("--user", "-u", help="Learner id.")]
CategoryOption = Annotated[
    list[str] | None, typer.Option("--category", "-c", help="Only cards in this category.")
]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON.")]


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
):
    """Global settings for cadence."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    logging.getLogger("cadence").setLevel(LOG_LEVELS.get(verbose, logging.DEBUG))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _resolve_with_overrides(**overrides: Any) -> AppConfig:
    try:
        return resolve_config(overrides)
    except CadenceError as e:
        typer.secho(str(e), fg="red", err=True)
        raise typer.Exit(2) from e


def _run(coro_factory):
    """Run an async CLI body, turning domain errors into a clean exit."""
    try:
        return asyncio.run(coro_factory())
    except CadenceError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


def _service(config: AppConfig):
    from cadence.application.factory import get_study_service

    try:
        return get_study_service(config)
    except CadenceError as e:
        typer.secho(f"Error: {e}", fg="red", err=True)
        raise typer.Exit(1) from e


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def due(
    deck: DeckOption = None,
    user: UserOption = None,
    limit: Annotated[int | None, typer.Option(help="Show at most this many cards.")] = None,
    category: CategoryOption = None,
    difficulty: Annotated[
        list[DifficultyLevel] | None, typer.Option(help="Only cards at this difficulty.")
    ] = None,
    json_output: JsonOption = False,
):
    """List the cards that are due, most urgent first."""
    config = _resolve_with_overrides(deck_path=deck, user_id=user)
    service = _service(config)

    async def run():
        return await service.due(
            config.user_id, _now(), limit=limit, categories=category, difficulties=difficulty
        )

    records = _run(run)
    if json_output:
        typer.echo(json.dumps([r.to_dict() for r in records], indent=2))
        return

    if not records:
        typer.secho("No cards due. You're all caught up!", fg="green")
        return

    typer.echo(f"Due cards: {len(records)}")
    for record in records:
        when = record.next_review_date.date().isoformat() if record.next_review_date else "-"
        typer.echo(
            f"  {record.card_id}  [{record.status.value}]  due {when}"
            f"  ({record.correct_count}/{record.total_reviews} correct)"
        )


@app.command()
def study(
    deck: DeckOption = None,
    user: UserOption = None,
    size: Annotated[int | None, typer.Option("--size", "-n", help="Cards per session.")] = None,
    category: CategoryOption = None,
):
    """[bold green]Study[/bold green] the due cards interactively."""
    config = _resolve_with_overrides(deck_path=deck, user_id=user, session_size=size)
    service = _service(config)
    choices = {"c": Outcome.CORRECT, "i": Outcome.INCORRECT, "s": Outcome.SKIPPED}

    async def run():
        from cadence.application.session import ReportOutcome

        session = await service.start_session(config.user_id, _now(), categories=category)
        if not session.cards:
            typer.secho("No cards due. You're all caught up!", fg="green")
            return None

        deck_cards = {c.id: c for c in service.cards(category)}
        while session.current is not None:
            card = deck_cards[session.current.card_id]
            typer.secho(
                f"\n[{session.index + 1}/{len(session.cards)}] {card.category} · "
                f"{card.difficulty.value}",
                fg="cyan",
            )
            typer.echo(card.question)
            typer.prompt("Press Enter to reveal the answer", default="", show_default=False)
            typer.echo(card.answer)

            answer = ""
            while answer not in choices and answer != "q":
                answer = typer.prompt("[c]orrect / [i]ncorrect / [s]kip / [q]uit").strip().lower()
            if answer == "q":
                session.abandon(_now())
                break
            await service.submit(
                config.user_id, session, ReportOutcome(card.id, choices[answer], _now())
            )

        category_name = category[0] if category and len(category) == 1 else None
        tracker = await service.finish_session(config.user_id, session, category_name)
        return session, tracker

    result = _run(run)
    if result is None:
        return
    session, tracker = result
    stats = session.stats
    typer.secho(f"\nSession {session.state.value}", fg="green")
    typer.echo(f"Correct: {stats.correct}  Incorrect: {stats.incorrect}  Skipped: {stats.skipped}")
    typer.echo(f"Accuracy: {stats.accuracy:.0%}")
    typer.echo(f"Streak: {tracker.streak_days} day(s)")


@app.command()
def stats(
    deck: DeckOption = None,
    user: UserOption = None,
    json_output: JsonOption = False,
):
    """Show card counts by learning status."""
    from dataclasses import asdict

    config = _resolve_with_overrides(deck_path=deck, user_id=user)
    service = _service(config)

    async def run():
        overview = await service.overview(config.user_id, _now())
        tracker = await service.study_time(config.user_id)
        return overview, tracker

    overview, tracker = _run(run)
    if json_output:
        typer.echo(
            json.dumps({"overview": asdict(overview), "study_time": tracker.to_dict()}, indent=2)
        )
        return

    typer.echo(
        f"Total: {overview.total}  New: {overview.new}  Learning: {overview.learning}"
        f"  Review: {overview.review}  Mastered: {overview.mastered}"
    )
    if overview.due:
        typer.secho(f"{overview.due} cards due for review", fg="yellow")
        if overview.overdue:
            typer.secho(f"{overview.overdue} cards are overdue", fg="red")
    else:
        typer.secho("No cards due", fg="green")
    typer.echo(
        f"Study time: {tracker.total_minutes} min over {tracker.session_count} sessions"
        f"  Streak: {tracker.streak_days} day(s)"
    )


@app.command()
def recommend(deck: DeckOption = None, user: UserOption = None):
    """Recommend the difficulty tier to practice next."""
    config = _resolve_with_overrides(deck_path=deck, user_id=user)
    service = _service(config)

    async def run():
        return await service.recommend(config.user_id)

    tier = _run(run)
    typer.echo(f"Recommended difficulty: {tier.value}")


@app.command()
def adaptive(
    deck: DeckOption = None,
    user: UserOption = None,
    limit: Annotated[int, typer.Option(help="Number of cards to select.")] = 20,
    category: CategoryOption = None,
    json_output: JsonOption = False,
):
    """Select cards weighted toward the recommended difficulty."""
    config = _resolve_with_overrides(deck_path=deck, user_id=user)
    service = _service(config)

    async def run():
        return await service.adaptive_deck(config.user_id, limit, _now(), categories=category)

    cards = _run(run)
    if json_output:
        typer.echo(
            json.dumps(
                [
                    {"id": c.id, "category": c.category, "difficulty": c.difficulty.value}
                    for c in cards
                ],
                indent=2,
            )
        )
        return
    for card in cards:
        typer.echo(f"  {card.id}  [{card.difficulty.value}]  {card.question}")


@app.command()
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8780,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("cadence.server:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Progress subgroup
# ---------------------------------------------------------------------------


@progress_app.command("export")
def progress_export(
    path: Annotated[Path, typer.Argument(help="Destination JSON file.")],
    user: UserOption = None,
):
    """Write a user's progress to a portable JSON file."""
    from cadence.infrastructure.progress import JsonProgressRepository

    config = _resolve_with_overrides(user_id=user)
    repo = JsonProgressRepository(config.data_dir)

    async def run():
        return await repo.export_document(config.user_id)

    document = _run(run)
    path.write_text(json.dumps(document, indent=2), encoding="utf-8")
    typer.secho(f"Exported {len(document['progress'])} records to {path}", fg="green")


@progress_app.command("import")
def progress_import(
    path: Annotated[Path, typer.Argument(help="JSON file created by 'progress export'.")],
    user: UserOption = None,
):
    """Merge progress from an exported JSON file."""
    from cadence.infrastructure.progress import JsonProgressRepository

    config = _resolve_with_overrides(user_id=user)
    repo = JsonProgressRepository(config.data_dir)

    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        typer.secho(f"Cannot read {path}: {e}", fg="red", err=True)
        raise typer.Exit(1) from e

    async def run():
        return await repo.import_document(config.user_id, document)

    changed = _run(run)
    typer.secho(f"Imported {changed} records", fg="green")


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))
