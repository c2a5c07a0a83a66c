"""Boxed terminal renderers. Every function returns a string; the CLI echoes it."""

from __future__ import annotations

import textwrap

import click

from daily_coach.models import CoachState, DailySnapshot, DailyStat, Goal, Insight, StoredInsight

WIDTH = 50


def _dim(s: str) -> str:
    return click.style(s, dim=True)


def box_top() -> str:
    return _dim("┌" + "─" * WIDTH + "┐")


def box_bot() -> str:
    return _dim("└" + "─" * WIDTH + "┘")


def box_mid() -> str:
    return _dim("├" + "─" * WIDTH + "┤")


def pad_line(text: str) -> str:
    return _dim("│") + " " + text


def wrap_text(text: str, max_width: int) -> list[str]:
    return textwrap.wrap(text, max_width) or [""]


def _header(title: str) -> list[str]:
    return [box_top(), pad_line(click.style(f"  {title}", bold=True, fg="white")), box_mid()]


def _section(label: str, body: str) -> list[str]:
    lines = [pad_line(""), pad_line(click.style(label, bold=True))]
    lines += [pad_line("  " + line) for line in wrap_text(body, WIDTH - 4)]
    return lines


def _bullets(label: str, items: list[str], marker: str = "-") -> list[str]:
    if not items:
        return []
    lines = [pad_line(""), pad_line(click.style(label, bold=True))]
    for item in items:
        lines += [pad_line("    " + line) for line in wrap_text(f"{marker} {item}", WIDTH - 6)]
    return lines


def _format_minutes(total: int) -> str:
    hours, mins = divmod(total, 60)
    return f"{hours}h {mins}m" if hours else f"{mins}m"


# ---------------------------------------------------------------------------
# Insight
# ---------------------------------------------------------------------------


def render_insight(insight: Insight, state: CoachState) -> str:
    streak = state.streak or 1
    right = f"Day {streak}" + (" 🔥" if streak >= 3 else "")
    header = "  COACH"
    padding = max(1, WIDTH - len(header) - len(right) - 1)

    out = [
        box_top(),
        pad_line(click.style(header, bold=True, fg="white") + " " * padding + click.style(right, fg="yellow")),
        box_mid(),
        pad_line(""),
        pad_line(click.style(f"  TODAY'S LENS: {insight.dimension}", fg="cyan", bold=True)),
    ]
    out += _section("  📖 LESSON", insight.lesson)
    out += _section("  💡 TIP", insight.tip)

    if insight.specific_example:
        out.append(pad_line(""))
        out.append(pad_line(click.style("  ✦ BEFORE (your prompt):", bold=True)))
        for line in wrap_text(insight.specific_example.before, WIDTH - 6):
            out.append(pad_line(_dim("    " + line)))
        out.append(pad_line(""))
        out.append(pad_line(click.style("  ✦ AFTER (try this):", bold=True)))
        for line in wrap_text(insight.specific_example.after, WIDTH - 6):
            out.append(pad_line(click.style("    " + line, fg="green")))

    out.append(pad_line(""))
    out.append(pad_line("  🌱 " + click.style(insight.encouragement, italic=True)))
    out.append(pad_line(""))
    out.append(box_mid())
    out.append(
        pad_line(
            _dim("  Was this helpful?  ")
            + click.style("[y]", bold=True)
            + " Yes  "
            + click.style("[n]", bold=True)
            + " No"
        )
    )
    out.append(box_bot())
    return "\n".join(out)


def render_streak(state: CoachState) -> str:
    out = _header("COACH STATS")
    out.append(pad_line(""))
    out.append(pad_line(f"  🔥 Current streak: {click.style(str(state.streak), bold=True, fg='yellow')} days"))
    out.append(pad_line(f"  📊 Total insights: {click.style(str(state.total_insights), bold=True)}"))
    if state.total_insights > 0:
        pct = round(state.helpful_count / state.total_insights * 100)
        out.append(
            pad_line(
                f"  👍 Helpful rate: {click.style(f'{pct}%', bold=True, fg='green')} "
                f"({state.helpful_count}/{state.total_insights})"
            )
        )
    out.append(pad_line(f"  📅 Last run: {state.last_run_date or 'never'}"))
    out.append(pad_line(""))
    out.append(box_bot())
    return "\n".join(out)


def render_history(insights: list[StoredInsight]) -> str:
    if not insights:
        return _dim("No insights yet. Run `coach` to get your first one!")

    out = _header("PAST INSIGHTS")
    for insight in reversed(insights[-10:]):
        if insight.rating == "helpful":
            icon = click.style("👍", fg="green")
        elif insight.rating == "not_helpful":
            icon = click.style("👎", fg="red")
        else:
            icon = _dim("--")
        out.append(pad_line(""))
        out.append(pad_line(f"  {_dim(insight.date)}  {click.style(insight.dimension, fg='cyan')}  {icon}"))
        out.append(pad_line(_dim(f"    {insight.lesson[:WIDTH - 8]}...")))
    out.append(pad_line(""))
    out.append(box_bot())

    if len(insights) > 10:
        out.append(_dim(f"  Showing last 10 of {len(insights)} insights"))
    return "\n".join(out)


def _cmd(s: str) -> str:
    return click.style(s, fg="cyan")


def render_welcome() -> str:
    cmd = _cmd
    out = _header("WELCOME TO COACH")
    out += [
        pad_line(""),
        pad_line("  Coach analyzes your Claude Code and Claude"),
        pad_line("  App sessions to give you a daily lesson and"),
        pad_line("  actionable tip, like a personal AI work coach."),
        pad_line(""),
        pad_line(click.style("  How it works:", bold=True)),
        pad_line("  1. Use Claude Code / Claude App as usual"),
        pad_line("  2. Run " + cmd("coach") + " at the end of your day"),
        pad_line("  3. Get a personalized insight + tip"),
        pad_line(""),
        pad_line(click.style("  Commands:", bold=True)),
        pad_line("  " + cmd("coach") + "           Today's lesson + tip"),
        pad_line("  " + cmd("coach handoff") + "   Handoff note for your work"),
        pad_line("  " + cmd("coach focus") + "     Focus & context-switching"),
        pad_line("  " + cmd("coach recap") + "     Quick stats (no AI)"),
        pad_line("  " + cmd("coach goals") + "     Track your goals"),
        pad_line("  " + cmd("coach compare") + "   Today vs recent averages"),
        pad_line("  " + cmd("coach --help") + "    All commands"),
        pad_line(""),
        pad_line(click.style("  Requirements:", bold=True)),
        pad_line("  " + _dim("Claude Code CLI installed and authenticated,")),
        pad_line("  " + _dim("or a local Ollama with --backend ollama.")),
        pad_line(""),
        box_bot(),
    ]
    return "\n".join(out)


def render_no_data() -> str:
    return (
        click.style("No Claude Code sessions found for today.", fg="yellow")
        + "\n"
        + _dim("Use Claude Code throughout the day, then run `coach` in the evening for your daily insight.")
    )


# ---------------------------------------------------------------------------
# Handoff / focus / costs
# ---------------------------------------------------------------------------


def render_handoff(handoff: dict) -> str:
    out = _header("HANDOFF NOTE")
    out += _section("  Working On", str(handoff.get("workingOn", "")))
    out += _section("  Current State", str(handoff.get("currentState", "")))
    out += _bullets("  Key Decisions", list(handoff.get("keyDecisions") or []))
    out += _bullets("  Next Steps", list(handoff.get("nextSteps") or []))
    out += _bullets("  Open Questions", list(handoff.get("openQuestions") or []), marker="?")
    out.append(pad_line(""))
    out.append(box_bot())
    return "\n".join(out)


def render_focus(focus: dict) -> str:
    out = _header("FOCUS ANALYSIS")
    out.append(pad_line(""))
    switches = click.style(str(focus.get("contextSwitches", 0)), bold=True, fg="yellow")
    out.append(pad_line(f"  Context switches: {switches}"))
    out += _section("  Longest Focus", str(focus.get("longestFocusPeriod", "")))
    out += _section("  Shortest Focus", str(focus.get("shortestFocusPeriod", "")))
    out += _section("  Pattern", str(focus.get("pattern", "")))
    out += _bullets("  Suggestions", list(focus.get("suggestions") or []))
    out.append(pad_line(""))
    out.append(box_bot())
    return "\n".join(out)


def render_costs(analysis: dict) -> str:
    out = _header("COST ANALYSIS")
    out.append(pad_line(""))
    cost = click.style(str(analysis.get("estimatedCost", "")), bold=True, fg="yellow")
    out.append(pad_line(f"  Estimated cost: {cost}"))
    out += _section("  Most Expensive Session", str(analysis.get("mostExpensiveSession", "")))
    out += _section("  Cost Breakdown", str(analysis.get("costBreakdown", "")))
    out += _section("  Surprising Fact", str(analysis.get("surprisingFact", "")))
    out += _bullets("  Efficiency Tips", list(analysis.get("efficiencyTips") or []))
    out += _section("  Prompt Engineering", str(analysis.get("promptEngineeringInsight", "")))
    out.append(pad_line(""))
    out.append(box_bot())
    return "\n".join(out)


# ---------------------------------------------------------------------------
# Recap / goals / compare
# ---------------------------------------------------------------------------


def render_recap(snapshot: DailySnapshot) -> str:
    out = _header("TODAY'S RECAP")
    out += [
        pad_line(""),
        pad_line(f"  Date: {click.style(snapshot.date.isoformat(), bold=True)}"),
        pad_line(f"  Projects: {click.style(', '.join(snapshot.projects_worked_on) or 'none', fg='cyan')}"),
        pad_line(f"  Sessions: {click.style(str(len(snapshot.sessions)), bold=True)}"),
        pad_line(f"  Prompts: {click.style(str(len(snapshot.prompts)), bold=True)}"),
        pad_line(f"  Tokens: {click.style(f'{snapshot.total_tokens:,}', bold=True)}"),
        pad_line(f"  Tool calls: {click.style(str(snapshot.total_tool_calls), bold=True)}"),
    ]

    total_minutes = sum(s.duration_minutes for s in snapshot.sessions)
    if total_minutes > 0:
        out.append(pad_line(f"  Time: {click.style(_format_minutes(total_minutes), bold=True)}"))

    tools = list(dict.fromkeys(t for s in snapshot.sessions for t in s.tool_names))
    if tools:
        out.append(pad_line(f"  Tools used: {_dim(', '.join(tools))}"))

    out.append(pad_line(""))
    out.append(box_bot())
    return "\n".join(out)


def render_goals(goals: list[Goal]) -> str:
    out = _header("GOALS")
    out.append(pad_line(""))
    if not goals:
        out.append(pad_line(_dim('  No goals set. Use `coach goals set "your goal"` to add one.')))
    for g in goals:
        if g.completed_date:
            status = click.style("[done]", fg="green")
            text = click.style(g.text, dim=True, strikethrough=True)
        else:
            status = click.style("[    ]", fg="yellow")
            text = g.text
        out.append(pad_line(f"  {status} {_dim(f'#{g.id}')} {text}"))
    out.append(pad_line(""))
    out.append(box_bot())
    return "\n".join(out)


def _compare_row(label: str, today_val: float, avg_val: float) -> str:
    diff = today_val - avg_val
    if diff > 0:
        arrow = click.style("^", fg="green")
    elif diff < 0:
        arrow = click.style("v", fg="red")
    else:
        arrow = _dim("=")
    diff_str = f" ({'+' if diff > 0 else ''}{round(diff)})" if diff else ""
    today_str = click.style(f"{round(today_val):>6}", bold=True)
    return f"  {label:<14} {today_str}  {_dim('avg')} {round(avg_val):>6}  {arrow}{diff_str}"


def render_compare(today: DailyStat, avg: DailyStat) -> str:
    out = _header("TODAY vs 7-DAY AVERAGE")
    out += [
        pad_line(""),
        pad_line(_compare_row("Sessions", today.sessions, avg.sessions)),
        pad_line(_compare_row("Prompts", today.prompts, avg.prompts)),
        pad_line(_compare_row("Tokens", today.tokens, avg.tokens)),
        pad_line(_compare_row("Tool calls", today.tool_calls, avg.tool_calls)),
        pad_line(
            f"  {'Projects':<14} {click.style(f'{len(today.projects):>6}', bold=True)}  "
            f"{_dim('avg')} {len(avg.projects):>6}"
        ),
        pad_line(""),
        box_bot(),
    ]
    return "\n".join(out)
