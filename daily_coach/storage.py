"""Persisted coach state (streak, goals, daily stats) and the insight log under ~/.coach/."""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import date, timedelta
from pathlib import Path

from daily_coach.jsonl import read_jsonl
from daily_coach.models import (
    CoachState,
    DailySnapshot,
    DailyStat,
    Goal,
    SpecificExample,
    StoredInsight,
)

COACH_DIR = Path.home() / ".coach"
STATE_FILENAME = "state.json"
INSIGHTS_FILENAME = "insights.jsonl"

MAX_RECENT_DIMENSIONS = 4
MAX_DAILY_STATS = 30


class StateError(Exception):
    """The state file exists but cannot be read."""


def _dir(coach_dir: Path | None) -> Path:
    coach_dir = coach_dir or COACH_DIR
    coach_dir.mkdir(parents=True, exist_ok=True)
    return coach_dir


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


def is_first_run(coach_dir: Path | None = None) -> bool:
    return not ((coach_dir or COACH_DIR) / STATE_FILENAME).exists()


def _state_from_data(data: dict) -> CoachState:
    state = CoachState()
    state.streak = int(data.get("streak", 0))
    state.last_run_date = data.get("last_run_date")
    state.recent_dimensions = list(data.get("recent_dimensions", []))
    state.total_insights = int(data.get("total_insights", 0))
    state.helpful_count = int(data.get("helpful_count", 0))
    state.not_helpful_count = int(data.get("not_helpful_count", 0))
    state.goals = [Goal(**g) for g in data.get("goals", [])]
    state.daily_stats = [DailyStat(**s) for s in data.get("daily_stats", [])]
    return state


def load_state(coach_dir: Path | None = None) -> CoachState:
    path = _dir(coach_dir) / STATE_FILENAME
    if not path.exists():
        return CoachState()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise TypeError("state is not a JSON object")
        return _state_from_data(data)
    except (OSError, ValueError, TypeError) as e:
        raise StateError(f"Cannot read {path}: {e}") from e


def save_state(state: CoachState, coach_dir: Path | None = None):
    path = _dir(coach_dir) / STATE_FILENAME
    path.write_text(json.dumps(asdict(state), indent=2), encoding="utf-8")


def update_streak(state: CoachState, today: date) -> CoachState:
    """Extend the streak when the last run was yesterday; restart it otherwise."""
    today_str = today.isoformat()
    if state.last_run_date == today_str:
        return state
    yesterday = (today - timedelta(days=1)).isoformat()
    if state.last_run_date == yesterday:
        state.streak += 1
    else:
        state.streak = 1
    state.last_run_date = today_str
    return state


def record_dimension(state: CoachState, dimension: str) -> CoachState:
    state.recent_dimensions.append(dimension)
    state.recent_dimensions = state.recent_dimensions[-MAX_RECENT_DIMENSIONS:]
    state.total_insights += 1
    return state


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------


def _insight_from_data(data: dict) -> StoredInsight:
    example = data.get("specific_example")
    return StoredInsight(
        dimension=data.get("dimension", ""),
        lesson=data.get("lesson", ""),
        tip=data.get("tip", ""),
        specific_example=SpecificExample(**example) if isinstance(example, dict) else None,
        encouragement=data.get("encouragement", ""),
        date=data.get("date", ""),
        rating=data.get("rating"),
    )


def append_insight(insight: StoredInsight, coach_dir: Path | None = None):
    path = _dir(coach_dir) / INSIGHTS_FILENAME
    with open(path, "a", encoding="utf-8") as f:
        f.write(json.dumps(asdict(insight)) + "\n")


def load_insights(coach_dir: Path | None = None) -> list[StoredInsight]:
    path = _dir(coach_dir) / INSIGHTS_FILENAME
    return [_insight_from_data(r) for r in read_jsonl(path)]


def update_last_insight_rating(rating: str, coach_dir: Path | None = None) -> bool:
    """Rate the most recent insight; rewrites the whole log."""
    insights = load_insights(coach_dir)
    if not insights:
        return False
    insights[-1].rating = rating
    path = _dir(coach_dir) / INSIGHTS_FILENAME
    path.write_text(
        "".join(json.dumps(asdict(i)) + "\n" for i in insights),
        encoding="utf-8",
    )
    return True


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------


def add_goal(text: str, today: date, coach_dir: Path | None = None) -> Goal:
    state = load_state(coach_dir)
    next_id = max((g.id for g in state.goals), default=0) + 1
    goal = Goal(id=next_id, text=text, created_date=today.isoformat())
    state.goals.append(goal)
    save_state(state, coach_dir)
    return goal


def complete_goal(goal_id: int, today: date, coach_dir: Path | None = None) -> bool:
    state = load_state(coach_dir)
    for goal in state.goals:
        if goal.id == goal_id and goal.completed_date is None:
            goal.completed_date = today.isoformat()
            save_state(state, coach_dir)
            return True
    return False


def clear_completed_goals(coach_dir: Path | None = None) -> int:
    state = load_state(coach_dir)
    remaining = [g for g in state.goals if g.completed_date is None]
    cleared = len(state.goals) - len(remaining)
    state.goals = remaining
    save_state(state, coach_dir)
    return cleared


# ---------------------------------------------------------------------------
# Daily stats
# ---------------------------------------------------------------------------


def daily_stat_from_snapshot(snapshot: DailySnapshot) -> DailyStat:
    return DailyStat(
        date=snapshot.date.isoformat(),
        sessions=len(snapshot.sessions),
        prompts=len(snapshot.prompts),
        tokens=snapshot.total_tokens,
        projects=snapshot.projects_worked_on,
        tool_calls=snapshot.total_tool_calls,
    )


def record_daily_stat(stat: DailyStat, coach_dir: Path | None = None):
    """Store ``stat``, replacing any entry for the same date."""
    state = load_state(coach_dir)
    stats = [s for s in state.daily_stats if s.date != stat.date]
    stats.append(stat)
    stats.sort(key=lambda s: s.date)
    state.daily_stats = stats[-MAX_DAILY_STATS:]
    save_state(state, coach_dir)


def average_stats(stats: list[DailyStat]) -> DailyStat | None:
    """Per-field mean of ``stats``; ``projects`` holds the mean project count."""
    if not stats:
        return None
    n = len(stats)
    return DailyStat(
        date=f"{n}-day avg",
        sessions=sum(s.sessions for s in stats) / n,
        prompts=sum(s.prompts for s in stats) / n,
        tokens=sum(s.tokens for s in stats) / n,
        projects=[""] * round(sum(len(s.projects) for s in stats) / n),
        tool_calls=sum(s.tool_calls for s in stats) / n,
    )
