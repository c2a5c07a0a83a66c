"""
coach - Daily AI work coach for Claude Code and Claude App users.

USAGE:
    coach                    Today's lesson + tip (default)
    coach handoff            Handoff note for your current work
    coach focus              Context-switching and focus patterns
    coach costs              Token costs and prompt engineering tips
    coach recap [--json]     Quick summary of today's stats (no AI)
    coach goals [set|done|clear]
    coach compare            Today vs recent averages
    coach history            Past insights
    coach streak             Current streak + stats
    coach rate y|n           Rate the latest insight

    coach --date 2026-01-15 recap
    coach --backend ollama --model qwen3:30b
"""

from __future__ import annotations

import json
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from pathlib import Path

import click

from daily_coach import __version__, analyzer, display, storage
from daily_coach.analyzer import AnalysisError
from daily_coach.collector import collect_day
from daily_coach.helpers import local_today
from daily_coach.models import DailySnapshot, StoredInsight
from daily_coach.storage import StateError


@dataclass
class Config:
    day: date
    verbose: bool
    claude_dir: Path | None
    app_sessions_dir: Path | None
    coach_dir: Path | None
    backend: str
    model: str | None

    def collect(self) -> DailySnapshot:
        return collect_day(
            self.day,
            claude_dir=self.claude_dir,
            app_sessions_dir=self.app_sessions_dir,
            verbose=self.verbose,
        )


pass_config = click.make_pass_decorator(Config)


@contextmanager
def _user_errors():
    try:
        yield
    except (AnalysisError, StateError) as e:
        raise click.ClickException(str(e)) from e


def _collect_or_none(cfg: Config) -> DailySnapshot | None:
    """Collect the day; echo the no-data message and return None when empty."""
    snapshot = cfg.collect()
    if not snapshot.prompts:
        click.echo(display.render_no_data())
        return None
    return snapshot


def _show(text: str):
    click.echo("")
    click.echo(text)
    click.echo("")


def _apply_rating(answer: str, cfg: Config) -> bool:
    """Record a y/n answer against the latest insight. Returns False for anything else."""
    answer = answer.strip().lower()
    if answer not in ("y", "yes", "n", "no"):
        return False
    helpful = answer in ("y", "yes")
    state = storage.load_state(cfg.coach_dir)
    if helpful:
        state.helpful_count += 1
    else:
        state.not_helpful_count += 1
    storage.update_last_insight_rating("helpful" if helpful else "not_helpful", cfg.coach_dir)
    storage.save_state(state, cfg.coach_dir)
    if helpful:
        click.secho("  Thanks! Noted for tomorrow. 🙌", fg="green")
    else:
        click.secho("  Got it, will adjust. Thanks for the feedback.", dim=True)
    return True


# ---------------------------------------------------------------------------
# Default command
# ---------------------------------------------------------------------------


def run_daily_insight(cfg: Config):
    if storage.is_first_run(cfg.coach_dir):
        _show(display.render_welcome())
        storage.save_state(storage.load_state(cfg.coach_dir), cfg.coach_dir)
        return

    snapshot = _collect_or_none(cfg)
    if snapshot is None:
        return
    click.echo(
        f"Found {len(snapshot.prompts)} prompts across {len(snapshot.sessions)} sessions. Analyzing...",
        err=True,
    )

    state = storage.load_state(cfg.coach_dir)
    past = storage.load_insights(cfg.coach_dir)
    storage.record_daily_stat(storage.daily_stat_from_snapshot(snapshot), cfg.coach_dir)

    insight = analyzer.analyze(
        snapshot,
        state.recent_dimensions,
        past,
        backend=cfg.backend,
        model=cfg.model,
        verbose=cfg.verbose,
    )

    state = storage.load_state(cfg.coach_dir)
    storage.update_streak(state, cfg.day)
    storage.record_dimension(state, insight.dimension)
    storage.save_state(state, cfg.coach_dir)

    _show(display.render_insight(insight, state))
    storage.append_insight(
        StoredInsight(
            dimension=insight.dimension,
            lesson=insight.lesson,
            tip=insight.tip,
            specific_example=insight.specific_example,
            encouragement=insight.encouragement,
            date=cfg.day.isoformat(),
        ),
        cfg.coach_dir,
    )

    if sys.stdin.isatty():
        answer = click.prompt("  ", default="", show_default=False, prompt_suffix="")
        if not _apply_rating(answer, cfg):
            click.secho("  Skipped. See you tomorrow!", dim=True)


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
@click.option(
    "--date",
    "day",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Local day to collect (default: today)",
)
@click.option(
    "--claude-dir",
    type=click.Path(path_type=Path, file_okay=False),
    envvar="CLAUDE_CONFIG_DIR",
    default=None,
    help="Claude Code data directory (default: ~/.claude)",
)
@click.option(
    "--app-sessions-dir",
    type=click.Path(path_type=Path, file_okay=False),
    envvar="COACH_APP_SESSIONS_DIR",
    default=None,
    help="Claude App local-agent-mode-sessions directory",
)
@click.option(
    "--coach-dir",
    type=click.Path(path_type=Path, file_okay=False),
    envvar="COACH_HOME",
    default=None,
    help="Where coach keeps its state (default: ~/.coach)",
)
@click.option(
    "--backend",
    type=click.Choice(analyzer.BACKENDS),
    envvar="COACH_BACKEND",
    default="claude",
    show_default=True,
    help="Language model backend",
)
@click.option("--model", envvar="COACH_MODEL", default=None, help="Model name for the backend")
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: click.Context,
    verbose: bool,
    day,
    claude_dir: Path | None,
    app_sessions_dir: Path | None,
    coach_dir: Path | None,
    backend: str,
    model: str | None,
):
    """Daily AI Work Coach: a lesson and a tip from today's Claude sessions."""
    cfg = Config(
        day=day.date() if day else local_today(),
        verbose=verbose,
        claude_dir=claude_dir,
        app_sessions_dir=app_sessions_dir,
        coach_dir=coach_dir,
        backend=backend,
        model=model,
    )
    ctx.obj = cfg
    if ctx.invoked_subcommand is None:
        with _user_errors():
            run_daily_insight(cfg)


# ---------------------------------------------------------------------------
# AI commands
# ---------------------------------------------------------------------------


@main.command("handoff")
@pass_config
def handoff_command(cfg: Config):
    """Generate a handoff note for your current work."""
    snapshot = _collect_or_none(cfg)
    if snapshot is None:
        return
    with _user_errors():
        note = analyzer.handoff(snapshot, backend=cfg.backend, model=cfg.model, verbose=cfg.verbose)
    _show(display.render_handoff(note))


@main.command("focus")
@pass_config
def focus_command(cfg: Config):
    """Analyze context-switching and focus patterns."""
    snapshot = _collect_or_none(cfg)
    if snapshot is None:
        return
    with _user_errors():
        result = analyzer.focus(snapshot, backend=cfg.backend, model=cfg.model, verbose=cfg.verbose)
    _show(display.render_focus(result))


@main.command("costs")
@pass_config
def costs_command(cfg: Config):
    """Token costs, prompt engineering tips and LLM insights."""
    snapshot = _collect_or_none(cfg)
    if snapshot is None:
        return
    with _user_errors():
        result = analyzer.costs(snapshot, backend=cfg.backend, model=cfg.model, verbose=cfg.verbose)
    _show(display.render_costs(result))


# ---------------------------------------------------------------------------
# Local commands
# ---------------------------------------------------------------------------


@main.command("recap")
@click.option("--json", "as_json", is_flag=True, help="Print the raw daily snapshot as JSON")
@pass_config
def recap_command(cfg: Config, as_json: bool):
    """Quick summary of today's stats (no AI)."""
    if as_json:
        click.echo(json.dumps(cfg.collect().to_dict(), indent=2, ensure_ascii=False))
        return
    snapshot = _collect_or_none(cfg)
    if snapshot is None:
        return
    _show(display.render_recap(snapshot))


@main.command("compare")
@pass_config
def compare_command(cfg: Config):
    """Compare today vs recent averages."""
    snapshot = _collect_or_none(cfg)
    if snapshot is None:
        return
    with _user_errors():
        state = storage.load_state(cfg.coach_dir)

    today = storage.daily_stat_from_snapshot(snapshot)
    past = [s for s in state.daily_stats if s.date != today.date][-7:]
    avg = storage.average_stats(past)
    if avg is None:
        click.echo("")
        click.echo(display.render_recap(snapshot))
        click.secho(
            "  No historical data yet for comparison. Run `coach` daily to build history.",
            dim=True,
        )
        click.echo("")
        return
    _show(display.render_compare(today, avg))


@main.command("history")
@pass_config
def history_command(cfg: Config):
    """Browse past insights."""
    _show(display.render_history(storage.load_insights(cfg.coach_dir)))


@main.command("streak")
@pass_config
def streak_command(cfg: Config):
    """Show current streak + stats."""
    with _user_errors():
        state = storage.load_state(cfg.coach_dir)
    _show(display.render_streak(state))


@main.command("rate")
@click.argument("value")
@pass_config
def rate_command(cfg: Config, value: str):
    """Rate the latest insight: y (helpful) or n (not helpful)."""
    with _user_errors():
        if not _apply_rating(value, cfg):
            raise click.UsageError("Usage: coach rate y|n")


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------


@main.group("goals", invoke_without_command=True)
@click.pass_context
def goals_group(ctx: click.Context):
    """Show current goals."""
    if ctx.invoked_subcommand is None:
        cfg = ctx.find_object(Config)
        with _user_errors():
            state = storage.load_state(cfg.coach_dir)
        _show(display.render_goals(state.goals))


@goals_group.command("set")
@click.argument("words", nargs=-1, required=True)
@pass_config
def goals_set(cfg: Config, words: tuple[str, ...]):
    """Add a goal: coach goals set "finish auth"."""
    text = " ".join(words).strip().strip("\"'")
    if not text:
        raise click.UsageError('Usage: coach goals set "your goal"')
    with _user_errors():
        goal = storage.add_goal(text, cfg.day, cfg.coach_dir)
    click.echo(click.style("✓", fg="green") + f" Goal #{goal.id} added: {goal.text}")


@goals_group.command("done")
@click.argument("goal_id", type=int)
@pass_config
def goals_done(cfg: Config, goal_id: int):
    """Mark a goal complete: coach goals done 1."""
    with _user_errors():
        ok = storage.complete_goal(goal_id, cfg.day, cfg.coach_dir)
    if not ok:
        raise click.ClickException(f"Goal #{goal_id} not found or already completed.")
    click.echo(click.style("✓", fg="green") + f" Goal #{goal_id} marked complete.")


@goals_group.command("clear")
@pass_config
def goals_clear(cfg: Config):
    """Clear completed goals."""
    with _user_errors():
        count = storage.clear_completed_goals(cfg.coach_dir)
    click.echo(click.style("✓", fg="green") + f" Cleared {count} completed goal{'s' if count != 1 else ''}.")


if __name__ == "__main__":
    main()
