"""Command line entry point for HabitSage."""

from __future__ import annotations

import asyncio
from datetime import date, datetime
from typing import Optional

import click

from .config import BaseConfig
from .context import AppContext, create_app_context
from .devtools import dev_log
from .errors import HabitSageError
from .logging_config import setup_logging
from .models.habit import HABIT_CATEGORIES, HABIT_FREQUENCIES, Habit
from .services import analytics
from .services.calendar_days import WINDOW_PRESETS, preset_window, to_calendar_day, today
from .services.habits import completion_rate, current_streak, longest_streak

DAY = click.DateTime(formats=["%Y-%m-%d"])


def _day(value: Optional[datetime]) -> date:
    return to_calendar_day(value) if value is not None else today()


def _load(app: AppContext, habit_id: int) -> Habit:
    try:
        return app.habit_repo.get_with_records(habit_id)
    except HabitSageError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Track habits, streaks and completion rates."""

    config = BaseConfig()
    setup_logging(config)
    app = create_app_context(config)
    ctx.obj = app
    ctx.call_on_close(app.close)


@cli.command("init-db")
@click.pass_obj
def init_db(app: AppContext) -> None:
    """Create the database schema."""

    click.echo(f"Database ready: {app.config.DATABASE_URL}")


@cli.command("add-habit")
@click.argument("name")
@click.option("--category", type=click.Choice(HABIT_CATEGORIES), default="health", show_default=True)
@click.option("--frequency", type=click.Choice(HABIT_FREQUENCIES), default="daily", show_default=True)
@click.option("--color", default="#3B82F6", show_default=True)
@click.option("--description", default="")
@click.pass_obj
def add_habit(
    app: AppContext, name: str, category: str, frequency: str, color: str, description: str
) -> None:
    """Create a habit."""

    habit = app.habit_repo.create(
        Habit(
            name=name.strip(),
            category=category,
            frequency=frequency,
            color=color,
            description=description,
        )
    )
    dev_log(app.config, "Habit created", context={"habit_id": habit.id})
    click.echo(f"Created habit #{habit.id}: {habit.name}")


@cli.command("list")
@click.option("--all", "include_inactive", is_flag=True, help="Include archived habits.")
@click.pass_obj
def list_habits(app: AppContext, include_inactive: bool) -> None:
    """List habits with their streaks."""

    habits = app.habit_repo.list_all(include_inactive=include_inactive, with_records=True)
    if not habits:
        click.echo("No habits yet.")
        return
    lookback = app.config.STREAK_LOOKBACK_DAYS
    for habit in habits:
        marker = "" if habit.is_active else " [archived]"
        click.echo(
            f"#{habit.id} {habit.name} ({habit.category}, {habit.frequency}){marker} "
            f"current={current_streak(habit, max_days=lookback)} longest={longest_streak(habit)}"
        )


@cli.command("toggle")
@click.argument("habit_id", type=int)
@click.option("--day", type=DAY, default=None, help="Calendar day, YYYY-MM-DD (default today).")
@click.pass_obj
def toggle(app: AppContext, habit_id: int, day: Optional[datetime]) -> None:
    """Flip a habit's completion for one day."""

    habit = _load(app, habit_id)
    target_day = _day(day)

    async def _run():
        store = app.toggle_store()
        return await store.toggle(habit, target_day)

    outcome = asyncio.run(_run())
    if not outcome.succeeded:
        raise click.ClickException(f"Failed to update {habit.name}: {outcome.error}")
    state = "completed" if outcome.requested else "unmarked"
    click.echo(f"{habit.name} {state} for {target_day.isoformat()}")


@cli.command("complete-all")
@click.option("--day", type=DAY, default=None, help="Calendar day, YYYY-MM-DD (default today).")
@click.pass_obj
def complete_all(app: AppContext, day: Optional[datetime]) -> None:
    """Mark every active habit complete for one day."""

    target_day = _day(day)
    habits = app.habit_repo.list_active(with_records=True)
    status = analytics.today_status(habits, target_day)
    if not status.pending:
        click.echo("Nothing left to complete.")
        return

    async def _run():
        store = app.toggle_store()
        return await store.bulk_toggle(status.pending, [target_day], value=True)

    results = asyncio.run(_run())
    for result in results:
        mark = "ok" if result.succeeded else f"failed: {result.error}"
        click.echo(f"{result.habit_name} {result.day.isoformat()}: {mark}")
    succeeded = sum(1 for r in results if r.succeeded)
    click.echo(f"Completed {succeeded} of {len(results)} habits.")


@cli.command("stats")
@click.argument("habit_id", type=int)
@click.option("--window", type=click.Choice(list(WINDOW_PRESETS)), default="30d", show_default=True)
@click.option("--day", type=DAY, default=None, help="Reference day (default today).")
@click.pass_obj
def stats(app: AppContext, habit_id: int, window: str, day: Optional[datetime]) -> None:
    """Show streaks and completion rate for one habit."""

    habit = _load(app, habit_id)
    reference = _day(day)
    start, end = preset_window(window, reference)
    current = current_streak(
        habit, reference, max_days=app.config.STREAK_LOOKBACK_DAYS
    )
    rate = completion_rate(habit, start, end, precision=app.config.RATE_PRECISION)
    click.echo(f"{habit.name}")
    click.echo(f"  current streak: {current}")
    click.echo(f"  longest streak: {longest_streak(habit)}")
    click.echo(f"  completion ({window}): {rate}%")


@cli.command("report")
@click.option("--window", type=click.Choice(list(WINDOW_PRESETS)), default="7d", show_default=True)
@click.option("--day", type=DAY, default=None, help="Window end day (default today).")
@click.pass_obj
def report(app: AppContext, window: str, day: Optional[datetime]) -> None:
    """Summarize all active habits over a window."""

    reference = _day(day)
    start, end = preset_window(window, reference)
    habits = app.habit_repo.list_active(with_records=True)
    summary = analytics.summarize(
        habits,
        start,
        end,
        reference_day=reference,
        precision=app.config.RATE_PRECISION,
        max_days=app.config.STREAK_LOOKBACK_DAYS,
    )
    click.echo(f"{start.isoformat()} .. {end.isoformat()}: {summary.total_habits} habits")
    click.echo(f"Overall completion: {summary.overall_completion_rate}%")
    click.echo(
        f"Active streaks: {summary.active_streaks} (longest {summary.longest_active_streak})"
    )
    for row in summary.leaderboard:
        click.echo(
            f"  {row.name}: {row.completion_rate}% ({row.completed}/{row.eligible}), "
            f"streak {row.current_streak}"
        )
    for rollup in summary.categories:
        click.echo(f"  [{rollup.category}] {rollup.completion_rate}%")


def main() -> None:  # pragma: no cover - console script
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
