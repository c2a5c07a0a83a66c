"""
Turn a DailySnapshot into coaching output with one language-model call.

Two backends share the same prompts:

    claude   one blocking ``claude -p --output-format text`` subprocess
    ollama   ``ollama.generate(..., format="json")`` against a local server

Every reply is expected to be a single JSON object.
"""

from __future__ import annotations

import json
import random
import re
import subprocess

from daily_coach.helpers import log, to_iso
from daily_coach.models import (
    CostEstimate,
    DailySnapshot,
    Insight,
    SpecificExample,
    StoredInsight,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DIMENSIONS: list[str] = [
    "Prompting Craft",
    "Workflow Efficiency",
    "Architecture Thinking",
    "Learning Patterns",
    "Focus & Deep Work",
    "Communication Style",
    "Tool Leverage",
    "Problem Decomposition",
    "Cost Awareness",
]

DIMENSION_DESCRIPTIONS: dict[str, str] = {
    "Prompting Craft": "clarity, specificity, effectiveness of the user's prompts",
    "Workflow Efficiency": "circular patterns, redundant requests, wasted effort",
    "Architecture Thinking": "over/under-engineering signals in what the user asks for",
    "Learning Patterns": "building knowledge vs re-learning the same things",
    "Focus & Deep Work": "context switching vs sustained depth",
    "Communication Style": "how problems are described to Claude",
    "Tool Leverage": "effective use of Claude's capabilities (tools, features)",
    "Problem Decomposition": "breaking down vs monolithic asks",
    "Cost Awareness": (
        "token efficiency, cost-effective prompting, understanding what makes "
        "prompts expensive or cheap"
    ),
}

# Sonnet pricing, USD per million tokens
INPUT_COST_PER_MTOK = 3
OUTPUT_COST_PER_MTOK = 15

BACKENDS = ("claude", "ollama")
DEFAULT_OLLAMA_MODEL = "gpt-oss:20b-cloud"
CLAUDE_NOT_FOUND = (
    "claude CLI not found. Install Claude Code first: "
    "https://docs.anthropic.com/en/docs/claude-code"
)

JSON_ONLY = "Respond with ONLY the JSON object, no markdown fences or other text."

_FENCE_START = re.compile(r"^```(?:json)?\s*")
_FENCE_END = re.compile(r"\s*```$")


class AnalysisError(Exception):
    """The language model could not be reached or its reply was unusable."""


# ---------------------------------------------------------------------------
# Costs
# ---------------------------------------------------------------------------


def estimate_costs(snapshot: DailySnapshot) -> list[CostEstimate]:
    estimates = []
    for s in snapshot.sessions:
        input_cost = s.input_tokens / 1_000_000 * INPUT_COST_PER_MTOK
        output_cost = s.output_tokens / 1_000_000 * OUTPUT_COST_PER_MTOK
        estimates.append(
            CostEstimate(
                session_id=s.session_id[:8],
                project=s.project,
                input_cost=input_cost,
                output_cost=output_cost,
                total_cost=input_cost + output_cost,
                input_tokens=s.input_tokens,
                output_tokens=s.output_tokens,
            )
        )
    return estimates


# ---------------------------------------------------------------------------
# Dimension selection
# ---------------------------------------------------------------------------


def pick_dimension(
    recent_dimensions: list[str],
    snapshot: DailySnapshot,
    rng: random.Random | None = None,
) -> str:
    """Pick today's lens: random among dimensions not used recently, boosted by data signals."""
    rng = rng or random.Random()
    pool = [d for d in DIMENSIONS if d not in recent_dimensions] or list(DIMENSIONS)
    scores = {d: rng.random() for d in pool}

    def boost(dimension: str, amount: float):
        if dimension in scores:
            scores[dimension] += amount

    n_prompts = len(snapshot.prompts)
    n_sessions = len(snapshot.sessions)
    avg_prompts = n_prompts / n_sessions if n_sessions else n_prompts

    if avg_prompts > 8:
        boost("Prompting Craft", 2)
        boost("Workflow Efficiency", 1)
    if len(snapshot.projects_worked_on) > 2:
        boost("Focus & Deep Work", 2)
    if snapshot.total_tool_calls > 20:
        boost("Tool Leverage", 1.5)
    if n_sessions == 1 and n_prompts > 5:
        boost("Problem Decomposition", 1.5)
    if snapshot.total_tokens > 100_000:
        boost("Cost Awareness", 1.5)

    return max(pool, key=lambda d: scores[d])


# ---------------------------------------------------------------------------
# Prompt builders
# ---------------------------------------------------------------------------


def _duration(session) -> str:
    return f"{session.duration_minutes}min"


def _dump(data) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def build_insight_prompt(
    snapshot: DailySnapshot,
    dimension: str,
    past_insights: list[StoredInsight],
) -> str:
    sample_prompts = [
        {"text": p.text[:500], "project": p.project, "sessionId": p.session_id[:8]}
        for p in snapshot.prompts[:40]
    ]
    costs = estimate_costs(snapshot)
    sessions = [
        {
            "project": s.project,
            "messages": s.message_count,
            "userMessages": s.user_message_count,
            "toolCalls": s.tool_call_count,
            "tools": list(s.tool_names),
            "tokens": s.total_tokens,
            "estimatedCost": f"${c.total_cost:.4f}",
            "duration": _duration(s),
            "branch": s.git_branch,
        }
        for s, c in zip(snapshot.sessions, costs)
    ]
    recent_rated = [
        {"dimension": i.dimension, "rating": i.rating, "date": i.date}
        for i in past_insights
        if i.rating is not None
    ][-5:]

    descriptions = "\n".join(f"- {d}: {DIMENSION_DESCRIPTIONS[d]}" for d in DIMENSIONS)
    total_cost = sum(c.total_cost for c in costs)
    ratings = ""
    if recent_rated:
        ratings = (
            "### Past Insight Ratings (for context on what the user finds helpful)\n"
            + _dump(recent_rated)
        )

    return f"""\
You are Coach, a personal AI work coach that analyzes a developer's Claude Code usage \
patterns to deliver one actionable lesson and one practical tip.

## Today's Analysis Dimension: {dimension}

Dimension descriptions:
{descriptions}

## Today's Session Data

Date: {snapshot.date.isoformat()}
Projects worked on: {", ".join(snapshot.projects_worked_on)}
Total sessions: {len(snapshot.sessions)}
Total messages: {snapshot.total_messages}
Total tool calls: {snapshot.total_tool_calls}
Total tokens: {snapshot.total_tokens:,}
Estimated total cost: ${total_cost:.4f} (Sonnet pricing)

### User Prompts (chronological)
{_dump(sample_prompts)}

### Session Summaries
{_dump(sessions)}

{ratings}

## Your Task

Analyze the data through the lens of "{dimension}" and return a JSON object with exactly these fields:

{{
  "dimension": "{dimension}",
  "lesson": "A specific, data-backed observation about today's work (2-3 sentences). Reference actual prompts or patterns you see.",
  "tip": "One concrete, actionable technique they can try tomorrow (2-3 sentences). Be specific with a method or framework.",
  "specificExample": {{ "before": "An actual prompt from today (or close paraphrase)", "after": "A rewritten version applying your tip" }} or null if not applicable,
  "encouragement": "One sentence noting something they did well today. Be genuine, find something real."
}}

Guidelines:
- Be specific. Reference actual data from the session: prompt text, project names, patterns.
- The lesson should feel like a personal discovery, not generic advice.
- The tip should be immediately actionable tomorrow.
- If the specificExample doesn't make sense for this dimension, set it to null.
- Keep the encouragement genuine and grounded in their actual work.

{JSON_ONLY}"""


def build_handoff_prompt(snapshot: DailySnapshot) -> str:
    sessions = [
        {
            "project": s.project,
            "branch": s.git_branch,
            "messages": s.message_count,
            "toolCalls": s.tool_call_count,
            "tools": list(s.tool_names),
            "duration": _duration(s),
        }
        for s in snapshot.sessions
    ]
    sample_prompts = [{"text": p.text[:400], "project": p.project} for p in snapshot.prompts[:30]]

    return f"""\
You are a work session analyzer. Given the developer's Claude Code sessions from today, \
produce a structured handoff note for when they pause or stop working.

## Today's Session Data

Date: {snapshot.date.isoformat()}
Projects: {", ".join(snapshot.projects_worked_on)}

### Sessions
{_dump(sessions)}

### User Prompts
{_dump(sample_prompts)}

## Your Task

Produce a handoff note as a JSON object with these fields:

{{
  "workingOn": "Brief description of what was being worked on (projects, branches, features)",
  "currentState": "What's done, what's in progress",
  "keyDecisions": ["Decision 1", "Decision 2"],
  "nextSteps": ["Next step 1", "Next step 2"],
  "openQuestions": ["Question 1"] or []
}}

Be specific: reference actual projects, branches, and prompt content.
{JSON_ONLY}"""


def project_switches(snapshot: DailySnapshot) -> list[str]:
    """``"a → b at <time>"`` for every change of project between consecutive prompts."""
    switches = []
    prompts = snapshot.prompts
    for prev, cur in zip(prompts, prompts[1:]):
        if cur.project != prev.project:
            switches.append(f"{prev.project} → {cur.project} at {to_iso(cur.timestamp)}")
    return switches


def build_focus_prompt(snapshot: DailySnapshot) -> str:
    timeline = [
        {
            "project": s.project,
            "start": to_iso(s.start_time),
            "end": to_iso(s.end_time),
            "prompts": s.user_message_count,
        }
        for s in snapshot.sessions
    ]
    switches = project_switches(snapshot)

    return f"""\
You are a focus and productivity analyst. Analyze this developer's context-switching \
patterns and suggest optimal focus blocks.

## Today's Data

Date: {snapshot.date.isoformat()}
Total sessions: {len(snapshot.sessions)}
Projects: {", ".join(snapshot.projects_worked_on)}

### Session Timeline
{_dump(timeline)}

### Context Switches
{chr(10).join(switches) if switches else "No context switches detected"}

## Your Task

Analyze the patterns and return a JSON object:

{{
  "contextSwitches": {len(switches)},
  "longestFocusPeriod": "Description of longest uninterrupted focus period",
  "shortestFocusPeriod": "Description of shortest period before switching",
  "pattern": "Overall observation about their focus pattern today (2-3 sentences)",
  "suggestions": ["Suggestion 1", "Suggestion 2", "Suggestion 3"]
}}

Be specific and reference actual project names and times.
{JSON_ONLY}"""


def build_costs_prompt(snapshot: DailySnapshot, costs: list[CostEstimate]) -> str:
    total_cost = sum(c.total_cost for c in costs)
    total_input = sum(c.input_tokens for c in costs)
    total_output = sum(c.output_tokens for c in costs)
    input_cost = sum(c.input_cost for c in costs)
    output_cost = sum(c.output_cost for c in costs)

    sample_prompts = [
        {"text": p.text[:400], "project": p.project, "charLength": len(p.text)}
        for p in snapshot.prompts[:30]
    ]
    session_costs = [
        {
            "project": c.project,
            "inputTokens": c.input_tokens,
            "outputTokens": c.output_tokens,
            "estimatedCost": f"${c.total_cost:.4f}",
        }
        for c in costs
    ]

    return f"""\
You are a cost and prompt engineering analyst for Claude Code usage. Analyze this \
developer's token usage and costs to provide actionable insights about efficiency, \
prompt engineering, and how LLMs process their requests.

## Today's Cost Data

Date: {snapshot.date.isoformat()}
Total estimated cost: ${total_cost:.4f} (using Sonnet pricing: ${INPUT_COST_PER_MTOK}/MTok input, ${OUTPUT_COST_PER_MTOK}/MTok output)
Total input tokens: {total_input:,} (${input_cost:.4f})
Total output tokens: {total_output:,} (${output_cost:.4f})
Total sessions: {len(snapshot.sessions)}
Total prompts: {len(snapshot.prompts)}
Total tool calls: {snapshot.total_tool_calls}

### Per-Session Costs
{_dump(session_costs)}

### User Prompts (with character lengths)
{_dump(sample_prompts)}

## Your Task

Analyze the cost patterns and return a JSON object with exactly these fields:

{{
  "estimatedCost": "Total estimated cost as a readable string (e.g. '$0.42')",
  "mostExpensiveSession": "Which session cost the most and why (project name, what drove the cost). 2-3 sentences.",
  "costBreakdown": "The input vs output token split and what it means. 2-3 sentences.",
  "surprisingFact": "One genuinely educational observation about token economics, tokenization, context windows or prompt caching. 2-3 sentences.",
  "efficiencyTips": ["Tip 1", "Tip 2", "Tip 3"],
  "promptEngineeringInsight": "An insight about prompt engineering or how LLMs work that relates to their usage. 2-3 sentences."
}}

Guidelines:
- Reference actual projects, prompt lengths, and cost numbers from the data.
- Give concrete efficiency tips, not generic "write shorter prompts".
- Keep costs in perspective (a cup of coffee, a SaaS subscription).
- If tool calls are a large part of the work, explain that each tool result is input tokens on the next turn.

{JSON_ONLY}"""


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


def run_claude(prompt: str, model: str | None = None, verbose: bool = False) -> str:
    """Send ``prompt`` to the ``claude`` CLI on stdin and return its stdout."""
    cmd = ["claude", "-p", "--output-format", "text"]
    if model:
        cmd += ["--model", model]
    log(f"Running: {' '.join(cmd)}", verbose)

    try:
        proc = subprocess.run(cmd, input=prompt, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise AnalysisError(CLAUDE_NOT_FOUND) from e
    except OSError as e:
        raise AnalysisError(f"Failed to run claude: {e}") from e

    if proc.returncode != 0:
        raise AnalysisError(proc.stderr.strip() or f"claude exited with code {proc.returncode}")
    return proc.stdout.strip()


def run_ollama(prompt: str, model: str | None = None, verbose: bool = False) -> str:
    """Send ``prompt`` to a local Ollama server and return the raw response text."""
    import ollama

    model = model or DEFAULT_OLLAMA_MODEL
    log(f"Generating via Ollama ({model})", verbose)
    try:
        resp = ollama.generate(model=model, prompt=prompt, format="json")
    except ollama.ResponseError as e:
        raise AnalysisError(f"Ollama error: {e.error}") from e
    except ConnectionError as e:
        raise AnalysisError(f"Ollama not reachable: {e}") from e
    return resp.response.strip()


def run_llm(prompt: str, backend: str = "claude", model: str | None = None, verbose: bool = False) -> str:
    if backend == "claude":
        return run_claude(prompt, model, verbose)
    if backend == "ollama":
        return run_ollama(prompt, model, verbose)
    raise AnalysisError(f"Unknown backend: {backend}")


def parse_json_reply(text: str) -> dict:
    """Parse a JSON object reply, tolerating a surrounding markdown fence."""
    cleaned = _FENCE_END.sub("", _FENCE_START.sub("", text.strip())).strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise AnalysisError(f"Could not parse model reply as JSON: {e}") from e
    if not isinstance(data, dict):
        raise AnalysisError("Model reply is not a JSON object")
    return data


# ---------------------------------------------------------------------------
# Analyses
# ---------------------------------------------------------------------------


def _insight_from_reply(data: dict, dimension: str) -> Insight:
    example = data.get("specificExample")
    specific = None
    if isinstance(example, dict) and example.get("before") and example.get("after"):
        specific = SpecificExample(before=str(example["before"]), after=str(example["after"]))
    return Insight(
        dimension=data.get("dimension") or dimension,
        lesson=str(data.get("lesson", "")),
        tip=str(data.get("tip", "")),
        specific_example=specific,
        encouragement=str(data.get("encouragement", "")),
    )


def analyze(
    snapshot: DailySnapshot,
    recent_dimensions: list[str],
    past_insights: list[StoredInsight],
    *,
    backend: str = "claude",
    model: str | None = None,
    rng: random.Random | None = None,
    verbose: bool = False,
) -> Insight:
    """Pick a dimension and ask the model for today's lesson and tip."""
    dimension = pick_dimension(recent_dimensions, snapshot, rng)
    log(f"Dimension: {dimension}", verbose)
    prompt = build_insight_prompt(snapshot, dimension, past_insights)
    data = parse_json_reply(run_llm(prompt, backend, model, verbose))
    return _insight_from_reply(data, dimension)


def handoff(snapshot: DailySnapshot, *, backend: str = "claude", model: str | None = None, verbose: bool = False) -> dict:
    return parse_json_reply(run_llm(build_handoff_prompt(snapshot), backend, model, verbose))


def focus(snapshot: DailySnapshot, *, backend: str = "claude", model: str | None = None, verbose: bool = False) -> dict:
    return parse_json_reply(run_llm(build_focus_prompt(snapshot), backend, model, verbose))


def costs(snapshot: DailySnapshot, *, backend: str = "claude", model: str | None = None, verbose: bool = False) -> dict:
    prompt = build_costs_prompt(snapshot, estimate_costs(snapshot))
    return parse_json_reply(run_llm(prompt, backend, model, verbose))
