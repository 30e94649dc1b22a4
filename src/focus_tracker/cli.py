"""Command-line interface for the focus tracker."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

from .config import TrackerSettings
from .paths import get_db_path

app = typer.Typer(help="Local focus tracker with rule-based session labels.")
rules_app = typer.Typer(help="Manage automatic classification rules.")
app.add_typer(rules_app, name="rules")

DB_OPTION = typer.Option(
    None,
    "--db",
    path_type=Path,
    help="Location of the tracker SQLite database.",
)


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command()
def run(
    db_path: Optional[Path] = DB_OPTION,
    sample_seconds: float = typer.Option(
        5.0, "--interval", min=1.0, help="Sampling interval in seconds while active."
    ),
    paused_seconds: Optional[float] = typer.Option(
        None,
        "--paused-interval",
        min=1.0,
        help="Sampling interval while asleep, locked or idle (defaults to 30s).",
    ),
    processing_seconds: float = typer.Option(
        60.0, "--process-every", min=1.0, help="Seconds between aggregation passes."
    ),
    idle_minutes: float = typer.Option(
        5.0,
        "--idle-threshold",
        min=0.5,
        help="Minutes without input before tracking pauses.",
    ),
    serve: bool = typer.Option(
        True, "--serve/--no-serve", help="Expose the local API while tracking."
    ),
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(8085, "--port", min=1, max=65535, help="TCP port for the API."),
) -> None:
    """Track focus and aggregate sessions until interrupted."""
    settings = TrackerSettings.from_intervals(
        sample_seconds=sample_seconds,
        paused_seconds=paused_seconds,
        processing_seconds=processing_seconds,
        idle_minutes=idle_minutes,
    )
    resolved = get_db_path(db_path)
    if serve:
        from .server_runner import run_service

        run_service(host=host, port=port, db_path=resolved, settings=settings)
        return

    import threading

    from .runtime import TrackerRuntime

    runtime = TrackerRuntime(resolved, settings)
    runtime.start()
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Shutdown signal received...")
    finally:
        runtime.close()


@app.command()
def process(db_path: Optional[Path] = DB_OPTION) -> None:
    """Aggregate all pending samples into sessions once."""
    from .rules import RuleMatcher
    from .segmentation import SegmentationEngine
    from .stores import Database, EventStore, SessionStore

    database = Database.open(get_db_path(db_path))
    try:
        sessions = SessionStore(database)
        engine = SegmentationEngine(EventStore(database), sessions, RuleMatcher(sessions))
        result = engine.run_pass()
    finally:
        database.close()
    typer.echo(
        f"Scanned {result.scanned} sample(s): {len(result.sessions)} session(s) saved, "
        f"{result.dropped} dropped, {result.skipped} skipped."
    )


@app.command()
def summary(
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Date (YYYY-MM-DD) to summarize. Defaults to today.",
    ),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Print classified time per label for a specific day."""
    from .reporting import SummaryPrinter

    target = datetime.strptime(date, "%Y-%m-%d") if date else datetime.now()
    SummaryPrinter(db_path=get_db_path(db_path)).print_daily_summary(target)


@app.command()
def classify(
    app_name: str = typer.Argument(..., help="Application name exactly as recorded."),
    window_title: str = typer.Argument(..., help="Window title exactly as recorded."),
    label: str = typer.Option(..., "--label", "-l", help="Classification name."),
    helpful: bool = typer.Option(True, "--helpful/--unhelpful"),
    goal: str = typer.Option("", "--goal", help="Goal context, e.g. Work or Learn."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Label every unclassified session of one app/window pair."""
    from .stores import Database, SessionStore

    database = Database.open(get_db_path(db_path))
    try:
        updated = SessionStore(database).classify(
            [(app_name, window_title)], label, is_helpful=helpful, goal_context=goal
        )
    finally:
        database.close()
    typer.echo(f"Classified {updated} session(s) as {label!r}.")


@rules_app.command("list")
def list_rules(db_path: Optional[Path] = DB_OPTION) -> None:
    """Show all rules, newest first."""
    from .stores import Database, SessionStore

    database = Database.open(get_db_path(db_path))
    try:
        rules = SessionStore(database).list_rules()
    finally:
        database.close()
    if not rules:
        typer.echo("No rules defined.")
        return
    for rule in rules:
        contains = rule.window_title_contains or "*"
        typer.echo(
            f"{rule.id:>4}  {rule.app_name:<20} {contains[:30]:<30} "
            f"p={rule.priority:<3} -> {rule.user_defined_name}"
        )


@rules_app.command("add")
def add_rule(
    app_name: str = typer.Argument(..., help="Application name to match exactly."),
    label: str = typer.Option(..., "--label", "-l", help="Classification name."),
    contains: str = typer.Option(
        "", "--contains", "-c", help="Substring the window title must contain."
    ),
    priority: int = typer.Option(0, "--priority", "-p", help="Higher wins."),
    helpful: bool = typer.Option(True, "--helpful/--unhelpful"),
    goal: str = typer.Option("", "--goal", help="Goal context, e.g. Work or Learn."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Create a rule that labels new sessions automatically."""
    from .stores import Database, SessionStore

    database = Database.open(get_db_path(db_path))
    try:
        rule_id = SessionStore(database).create_rule(
            app_name,
            contains,
            label,
            is_helpful=helpful,
            goal_context=goal,
            priority=priority,
        )
    finally:
        database.close()
    typer.echo(f"Created rule {rule_id}.")


@rules_app.command("remove")
def remove_rule(
    rule_id: int = typer.Argument(..., help="Identifier shown by `rules list`."),
    db_path: Optional[Path] = DB_OPTION,
) -> None:
    """Delete a rule."""
    from .stores import Database, SessionStore

    database = Database.open(get_db_path(db_path))
    try:
        SessionStore(database).delete_rule(rule_id)
    except LookupError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    finally:
        database.close()
    typer.echo(f"Deleted rule {rule_id}.")


if __name__ == "__main__":
    app()
