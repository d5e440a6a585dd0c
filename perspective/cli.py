"""
Perspective CLI.

Commands:
    perspective init-db                 - Create database tables
    perspective next USER               - Pick a challenge (nothing stored)
    perspective today USER              - Show (or choose) today's challenge
    perspective recommend USER -n 5     - Suggest distinct challenges
    perspective analyze USER            - Strengths, weaknesses and trend
    perspective echo-score USER --save  - Calculate the Echo Score
    perspective history USER --days 30  - Past Echo Score snapshots
    perspective progress USER           - Echo Score trend per component
    perspective weekly USER             - Weekly average scores
    perspective daily-batch             - Score users active yesterday
"""
from __future__ import annotations

import asyncio
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Annotated, Optional

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from config import Settings, get_settings
from perspective.adaptive import AdaptiveConfig, ChallengeCandidate, ChallengeSelector
from perspective.errors import PerspectiveError
from perspective.scoring import (
    COMPONENTS,
    EchoScoreCalculator,
    EchoScoreConfig,
    EchoScoreScheduler,
)
from perspective.store.sql_store import SqlActivityStore, SqlChallengeCatalog
from perspective.timeutils import utc_now

app = typer.Typer(
    name="perspective",
    help="Adaptive challenge selection and Echo Score",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()


# =============================================================================
# Context Builder
# =============================================================================


class CLIContext:
    """Lazily wires the engine services against the configured database."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._store: Optional[SqlActivityStore] = None
        self._selector: Optional[ChallengeSelector] = None
        self._calculator: Optional[EchoScoreCalculator] = None

    @property
    def store(self) -> SqlActivityStore:
        if self._store is None:
            self._store = SqlActivityStore()
        return self._store

    @property
    def selector(self) -> ChallengeSelector:
        if self._selector is None:
            self._selector = ChallengeSelector(
                self.store,
                SqlChallengeCatalog(),
                config=AdaptiveConfig.from_settings(self.settings),
            )
        return self._selector

    @property
    def calculator(self) -> EchoScoreCalculator:
        if self._calculator is None:
            self._calculator = EchoScoreCalculator(
                self.store, EchoScoreConfig.from_settings(self.settings)
            )
        return self._calculator

    @property
    def scheduler(self) -> EchoScoreScheduler:
        return EchoScoreScheduler(self.store, calculator=self.calculator)


@contextmanager
def _handle_errors() -> Iterator[None]:
    try:
        yield
    except PerspectiveError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)
    except SQLAlchemyError as e:
        logger.error(f"Database error: {e}")
        rprint("[red]Database error - see log for details[/red]")
        raise typer.Exit(code=1)


def _challenge_panel(challenge: ChallengeCandidate, title: str) -> Panel:
    return Panel(
        f"[bold]{challenge.title or f'Challenge {challenge.id}'}[/bold]\n"
        f"Type: {challenge.challenge_type.value}\n"
        f"Difficulty: {challenge.difficulty.value}\n"
        f"Estimated time: {challenge.estimated_time_minutes:g} min",
        title=title,
        border_style="cyan",
    )


# =============================================================================
# Database
# =============================================================================


@app.command("init-db")
def init_db_command() -> None:
    """Create all database tables."""
    from perspective.db.database import init_db

    with _handle_errors():
        init_db()
    rprint("[green]Database initialized[/green]")


# =============================================================================
# Challenge Selection
# =============================================================================


@app.command("next")
def next_challenge(
    user_id: Annotated[int, typer.Argument(help="User id")],
) -> None:
    """Pick the next challenge for a user without storing it."""
    ctx = CLIContext()
    with _handle_errors():
        challenge = ctx.selector.get_next_challenge(user_id)
    if challenge is None:
        rprint("[yellow]No challenges available[/yellow]")
        raise typer.Exit(code=1)
    console.print(_challenge_panel(challenge, "Next challenge"))


@app.command()
def today(
    user_id: Annotated[int, typer.Argument(help="User id")],
) -> None:
    """Show today's challenge, selecting and storing it on first request."""
    ctx = CLIContext()
    with _handle_errors():
        challenge = ctx.selector.get_todays_challenge(user_id)
    if challenge is None:
        rprint("[yellow]No challenges available[/yellow]")
        raise typer.Exit(code=1)
    console.print(_challenge_panel(challenge, f"Today's challenge ({utc_now().date()})"))


@app.command()
def recommend(
    user_id: Annotated[int, typer.Argument(help="User id")],
    count: Annotated[int, typer.Option("--count", "-n", help="Number of suggestions")] = 3,
) -> None:
    """Suggest distinct challenges."""
    ctx = CLIContext()
    with _handle_errors():
        challenges = ctx.selector.get_recommendations(user_id, count=count)

    if not challenges:
        rprint("[yellow]No challenges available[/yellow]")
        return

    table = Table(title=f"Recommendations for user {user_id}", show_header=True)
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Title")
    table.add_column("Type", style="magenta")
    table.add_column("Difficulty")
    table.add_column("Minutes", justify="right")
    for challenge in challenges:
        table.add_row(
            str(challenge.id),
            challenge.title or "-",
            challenge.challenge_type.value,
            challenge.difficulty.value,
            f"{challenge.estimated_time_minutes:g}",
        )
    console.print(table)


@app.command()
def analyze(
    user_id: Annotated[int, typer.Argument(help="User id")],
) -> None:
    """Summarize strengths, weaknesses and progress trend."""
    ctx = CLIContext()
    with _handle_errors():
        analysis = ctx.selector.analyze_progress(user_id)

    colour = {"improving": "green", "declining": "red"}.get(analysis.progress_trend, "yellow")
    rprint(f"\n[bold]Trend:[/bold] [{colour}]{analysis.progress_trend}[/{colour}]")
    rprint(f"[bold]Strengths:[/bold] {', '.join(t.value for t in analysis.strengths) or '-'}")
    rprint(f"[bold]Weaknesses:[/bold] {', '.join(t.value for t in analysis.weaknesses) or '-'}")
    rprint(
        f"[bold]Recommended focus:[/bold] "
        f"{', '.join(t.value for t in analysis.recommended_focus) or '-'}\n"
    )


# =============================================================================
# Echo Score
# =============================================================================


@app.command("echo-score")
def echo_score(
    user_id: Annotated[int, typer.Argument(help="User id")],
    save: Annotated[bool, typer.Option("--save", help="Store a snapshot")] = False,
) -> None:
    """Calculate the Echo Score."""
    ctx = CLIContext()
    with _handle_errors():
        if save:
            snapshot = ctx.calculator.calculate_and_save(user_id)
            total = snapshot.total_score
            components = {name: snapshot.component(name) for name in COMPONENTS}
        else:
            result = ctx.calculator.calculate(user_id)
            total = result.total_score
            components = result.components.to_dict()

    table = Table(title=f"Echo Score for user {user_id}: {total:.2f}", show_header=True)
    table.add_column("Component", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Weight", justify="right", style="dim")
    weights = ctx.calculator.config.weights
    for name in COMPONENTS:
        table.add_row(name, f"{components[name]:.2f}", f"{weights[name]:.2f}")
    console.print(table)
    if save:
        rprint("[green]Snapshot saved[/green]")


@app.command()
def history(
    user_id: Annotated[int, typer.Argument(help="User id")],
    days: Annotated[Optional[int], typer.Option("--days", "-d", help="Limit to last N days")] = 30,
) -> None:
    """List Echo Score snapshots, newest first."""
    ctx = CLIContext()
    with _handle_errors():
        snapshots = ctx.calculator.get_history(user_id, days=days)

    if not snapshots:
        rprint("[yellow]No Echo Score history[/yellow]")
        return

    table = Table(title=f"Echo Score history for user {user_id}", show_header=True)
    table.add_column("Date", style="cyan")
    table.add_column("Total", justify="right", style="bold")
    for name in COMPONENTS:
        table.add_column(name, justify="right")
    for snapshot in snapshots:
        table.add_row(
            snapshot.score_date.isoformat(),
            f"{snapshot.total_score:.2f}",
            *(f"{snapshot.component(name):.1f}" for name in COMPONENTS),
        )
    console.print(table)


@app.command()
def progress(
    user_id: Annotated[int, typer.Argument(help="User id")],
    period: Annotated[str, typer.Option("--period", "-p", help="daily or weekly")] = "daily",
) -> None:
    """Show the Echo Score trend per component."""
    if period not in ("daily", "weekly"):
        rprint(f"[red]Unknown period:[/red] {period}")
        raise typer.Exit(code=1)

    ctx = CLIContext()
    with _handle_errors():
        result = ctx.calculator.get_score_progress(user_id, period)  # type: ignore[arg-type]

    table = Table(title=f"Echo Score progress ({period}, {len(result.scores)} snapshots)")
    table.add_column("Component", style="cyan")
    table.add_column("Slope", justify="right")
    for name, slope in result.trends.items():
        style = "green" if slope > 0 else "red" if slope < 0 else "dim"
        table.add_row(name, f"[{style}]{slope:+.3f}[/{style}]")
    console.print(table)


@app.command()
def weekly(
    user_id: Annotated[int, typer.Argument(help="User id")],
) -> None:
    """Average Echo Score over the last week."""
    ctx = CLIContext()
    with _handle_errors():
        summary = ctx.scheduler.weekly_summary(user_id)

    if summary is None:
        rprint("[yellow]No Echo Score snapshots in the last week[/yellow]")
        return

    rprint(
        f"\n[bold]Weekly average:[/bold] {summary.average_total:.2f} "
        f"({summary.scores_count} snapshots)"
    )
    for name in COMPONENTS:
        rprint(f"  {name}: {summary.averages[name]:.2f}")


@app.command("daily-batch")
def daily_batch(
    day: Annotated[
        Optional[datetime],
        typer.Option("--date", formats=["%Y-%m-%d"], help="Activity day (default yesterday)"),
    ] = None,
) -> None:
    """Calculate Echo Scores for users active on a day."""
    ctx = CLIContext()
    with _handle_errors():
        result = asyncio.run(ctx.scheduler.run_daily_batch(day.date() if day else None))

    rprint(
        f"\n[bold]Daily batch {result.date}:[/bold] "
        f"[green]{result.processed} processed[/green], [red]{result.failed} failed[/red]"
    )
    if result.failed_users:
        rprint(f"  Failed users: {', '.join(str(u) for u in result.failed_users)}")
        raise typer.Exit(code=1)


# =============================================================================
# Entry Point
# =============================================================================


def configure_logging(settings: Settings) -> None:
    """Route loguru to stderr, plus a rotating file when configured."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.has_file_logging():
        logger.add(settings.log_file, level=settings.log_level, rotation="10 MB", retention=5)


def main() -> None:
    """CLI entry point."""
    configure_logging(get_settings())
    app()


if __name__ == "__main__":
    main()
