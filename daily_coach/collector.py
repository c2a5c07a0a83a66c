"""
Collect one day of activity from Claude Code and the Claude desktop app.

Claude Code keeps two tiers of logs under ~/.claude/:

    history.jsonl                     every prompt: display, timestamp (ms), project, sessionId
    projects/<project>/<session>.jsonl one transcript per session

The desktop app's local agent mode nests sessions three levels deep:

    <workspace>/<user>/local_<id>/audit.jsonl
    <workspace>/<user>/local_<id>.json        session metadata (title, sessionId)

Both pipelines produce PromptEvents and SessionSummaries for the target local
day; ``collect_day`` merges them into a DailySnapshot.  Nothing here raises for
missing, unreadable or malformed input: the worst case is an empty snapshot.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path

from daily_coach.helpers import (
    local_today,
    log,
    project_label,
    timestamp_on_day,
)
from daily_coach.jsonl import read_jsonl
from daily_coach.models import (
    DailySnapshot,
    PromptEvent,
    SessionSource,
    SessionSummary,
    content_text,
    parse_content,
    tool_invocations,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

CLAUDE_DIR = Path.home() / ".claude"
HISTORY_FILE = CLAUDE_DIR / "history.jsonl"
PROJECTS_DIR = CLAUDE_DIR / "projects"
DESKTOP_SESSIONS_DIR = (
    Path.home() / "Library" / "Application Support" / "Claude" / "local-agent-mode-sessions"
)

TRANSCRIPT_SUFFIX = ".jsonl"
SNAPSHOT_TYPE = "file-history-snapshot"
APP_SESSION_PREFIX = "local_"
APP_AUDIT_FILE = "audit.jsonl"
APP_DEFAULT_TITLE = "Claude App"


@dataclass
class SourceResult:
    prompts: list[PromptEvent] = field(default_factory=list)
    sessions: list[SessionSummary] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Session fold
# ---------------------------------------------------------------------------


class _SessionFold:
    """Running totals for one session file, scoped to a single fold."""

    def __init__(self, source: SessionSource, session_id: str = "", project: str = ""):
        self.source = source
        self.session_id = session_id
        self.project = project
        self.git_branch: str | None = None
        self.user_count = 0
        self.assistant_count = 0
        self.tool_call_count = 0
        self.tool_names: dict[str, None] = {}
        self.input_tokens = 0
        self.output_tokens = 0
        self.start: datetime | None = None
        self.end: datetime | None = None

    def see(self, ts: datetime):
        if self.start is None or ts < self.start:
            self.start = ts
        if self.end is None or ts > self.end:
            self.end = ts

    def add_tools(self, names: list[str]):
        self.tool_call_count += len(names)
        for name in names:
            self.tool_names.setdefault(name, None)

    def add_usage(self, usage):
        if not isinstance(usage, dict):
            return
        self.input_tokens += _token_count(usage.get("input_tokens"))
        self.output_tokens += _token_count(usage.get("output_tokens"))

    def build(self) -> SessionSummary | None:
        # every counted record has been seen, so start/end are set past here
        if self.user_count == 0 and self.assistant_count == 0:
            return None
        return SessionSummary(
            session_id=self.session_id,
            project=self.project,
            source=self.source,
            user_message_count=self.user_count,
            assistant_message_count=self.assistant_count,
            tool_call_count=self.tool_call_count,
            tool_names=tuple(self.tool_names),
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            start_time=self.start,
            end_time=self.end,
            git_branch=self.git_branch,
        )


def _token_count(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value


def _message_content(record: dict):
    message = record.get("message")
    if not isinstance(message, dict):
        return None, {}
    return parse_content(message.get("content")), message


def _str_field(record: dict, key: str) -> str:
    value = record.get(key)
    return value if isinstance(value, str) else ""


# ---------------------------------------------------------------------------
# Claude Code (primary source)
# ---------------------------------------------------------------------------


def collect_code_prompts(
    day: date,
    history_file: Path | None = None,
    verbose: bool = False,
) -> list[PromptEvent]:
    """Prompts from ``history.jsonl`` whose timestamp falls on ``day``."""
    history_file = history_file or HISTORY_FILE
    entries = read_jsonl(history_file)
    prompts: list[PromptEvent] = []

    for entry in entries:
        ts = timestamp_on_day(entry.get("timestamp"), day)
        if ts is None:
            continue
        prompts.append(
            PromptEvent(
                text=_str_field(entry, "display"),
                timestamp=ts,
                session_id=_str_field(entry, "sessionId"),
                project=project_label(_str_field(entry, "project")),
            )
        )

    log(f"History: {len(entries)} entries, {len(prompts)} on {day}", verbose)
    return prompts


def find_code_session_files(
    session_ids: set[str],
    projects_dir: Path | None = None,
    verbose: bool = False,
) -> list[Path]:
    """Transcript files named ``<session-id>.jsonl`` for the given sessions."""
    projects_dir = projects_dir or PROJECTS_DIR
    files: list[Path] = []
    if not session_ids or not _is_dir(projects_dir):
        return files

    try:
        project_dirs = sorted(projects_dir.iterdir())
    except OSError:
        return files

    for project_dir in project_dirs:
        try:
            entries = sorted(project_dir.iterdir())
        except OSError:
            # Not a directory, or not readable
            continue
        for item in entries:
            if not item.name.endswith(TRANSCRIPT_SUFFIX):
                continue
            if item.name[: -len(TRANSCRIPT_SUFFIX)] in session_ids:
                files.append(item)

    log(f"Matched {len(files)} transcript files for {len(session_ids)} sessions", verbose)
    return files


def parse_code_session_file(path: Path, day: date) -> SessionSummary | None:
    """Fold one transcript into a SessionSummary for ``day``.

    Later records win for session id, branch and project, since they carry the
    most complete context.
    """
    fold = _SessionFold(SessionSource.CLAUDE_CODE)

    for record in read_jsonl(path):
        msg_type = record.get("type")
        if msg_type == SNAPSHOT_TYPE:
            continue
        ts = timestamp_on_day(record.get("timestamp"), day)
        if ts is None:
            continue

        fold.see(ts)
        if _str_field(record, "sessionId"):
            fold.session_id = record["sessionId"]
        if _str_field(record, "gitBranch"):
            fold.git_branch = record["gitBranch"]
        if _str_field(record, "cwd"):
            fold.project = project_label(record["cwd"])

        if msg_type == "user":
            fold.user_count += 1
        elif msg_type == "assistant":
            fold.assistant_count += 1
            content, message = _message_content(record)
            fold.add_usage(message.get("usage"))
            fold.add_tools(tool_invocations(content))

    if not fold.session_id:
        fold.session_id = path.name[: -len(TRANSCRIPT_SUFFIX)]
    return fold.build()


def collect_code_sessions(
    day: date,
    claude_dir: Path | None = None,
    verbose: bool = False,
) -> SourceResult:
    history_file = claude_dir / "history.jsonl" if claude_dir else None
    projects_dir = claude_dir / "projects" if claude_dir else None

    prompts = collect_code_prompts(day, history_file, verbose)
    session_ids = {p.session_id for p in prompts if p.session_id}
    files = find_code_session_files(session_ids, projects_dir, verbose)
    sessions = [s for s in (parse_code_session_file(f, day) for f in files) if s is not None]

    log(f"Claude Code: {len(prompts)} prompts, {len(sessions)} sessions", verbose)
    return SourceResult(prompts, sessions)


# ---------------------------------------------------------------------------
# Claude desktop app (secondary source)
# ---------------------------------------------------------------------------


def _is_dir(path: Path) -> bool:
    try:
        return path.is_dir()
    except OSError:
        return False


def _is_file(path: Path) -> bool:
    try:
        return path.is_file()
    except OSError:
        return False


def _subdirs(path: Path) -> list[Path]:
    """Sorted child directories of ``path``; ``[]`` if it cannot be listed.

    Children that cannot be stat'ed are skipped one by one.
    """
    try:
        children = list(path.iterdir())
    except OSError:
        return []
    return sorted(p for p in children if _is_dir(p))


def find_app_audit_files(
    sessions_dir: Path | None = None,
    verbose: bool = False,
) -> list[tuple[Path, Path]]:
    """Walk workspace / user / ``local_*`` session dirs.

    Returns ``(audit_path, meta_path)`` pairs for sessions with an audit file.
    """
    sessions_dir = sessions_dir or DESKTOP_SESSIONS_DIR
    results: list[tuple[Path, Path]] = []
    if not _is_dir(sessions_dir):
        return results

    for workspace in _subdirs(sessions_dir):
        for user_dir in _subdirs(workspace):
            for session_dir in _subdirs(user_dir):
                if not session_dir.name.startswith(APP_SESSION_PREFIX):
                    continue
                audit_path = session_dir / APP_AUDIT_FILE
                if _is_file(audit_path):
                    meta_path = user_dir / f"{session_dir.name}.json"
                    results.append((audit_path, meta_path))

    log(f"Claude App: found {len(results)} audit files", verbose)
    return results


def load_app_session_meta(meta_path: Path) -> tuple[str, str]:
    """Return ``(title, session_id)`` from a metadata file, with defaults."""
    try:
        data = json.loads(meta_path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return APP_DEFAULT_TITLE, ""
    if not isinstance(data, dict):
        return APP_DEFAULT_TITLE, ""
    return _str_field(data, "title") or APP_DEFAULT_TITLE, _str_field(data, "sessionId")


def parse_app_session(
    audit_path: Path,
    meta_path: Path,
    day: date,
) -> SourceResult:
    """Prompts and (at most one) SessionSummary from one audit file for ``day``."""
    title, session_id = load_app_session_meta(meta_path)
    label = f"[App] {title}"
    fold = _SessionFold(SessionSource.CLAUDE_APP, session_id, label)
    prompts: list[PromptEvent] = []
    has_day_records = False

    for record in read_jsonl(audit_path):
        ts = timestamp_on_day(record.get("_audit_timestamp"), day)
        if ts is None:
            continue
        has_day_records = True
        fold.see(ts)

        record_session_id = _str_field(record, "session_id")
        if not fold.session_id and record_session_id:
            fold.session_id = record_session_id

        msg_type = record.get("type")
        if msg_type == "user":
            fold.user_count += 1
            content, _message = _message_content(record)
            text = content_text(content)
            if text:
                prompts.append(
                    PromptEvent(
                        text=text,
                        timestamp=ts,
                        session_id=fold.session_id or record_session_id,
                        project=label,
                    )
                )
        elif msg_type == "assistant":
            fold.assistant_count += 1
            content, _message = _message_content(record)
            fold.add_tools(tool_invocations(content))

    if not has_day_records:
        return SourceResult()
    summary = fold.build()
    return SourceResult(prompts, [summary] if summary else [])


def collect_app_sessions(
    day: date,
    sessions_dir: Path | None = None,
    verbose: bool = False,
) -> SourceResult:
    result = SourceResult()
    for audit_path, meta_path in find_app_audit_files(sessions_dir, verbose):
        session = parse_app_session(audit_path, meta_path, day)
        result.prompts.extend(session.prompts)
        result.sessions.extend(session.sessions)

    log(f"Claude App: {len(result.prompts)} prompts, {len(result.sessions)} sessions", verbose)
    return result


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def merge_sources(day: date, *results: SourceResult) -> DailySnapshot:
    """Combine source results into a snapshot.

    Prompts are stably sorted by timestamp, so input order breaks ties.
    Sessions are concatenated as-is, even when two share an id.
    """
    prompts = [p for r in results for p in r.prompts]
    prompts.sort(key=lambda p: p.timestamp)
    sessions = [s for r in results for s in r.sessions]
    return DailySnapshot(date=day, prompts=tuple(prompts), sessions=tuple(sessions))


def collect_day(
    day: date | None = None,
    *,
    claude_dir: Path | None = None,
    app_sessions_dir: Path | None = None,
    verbose: bool = False,
) -> DailySnapshot:
    """Collect and merge both sources for ``day`` (default: local today)."""
    day = day or local_today()
    code = collect_code_sessions(day, claude_dir, verbose)
    app = collect_app_sessions(day, app_sessions_dir, verbose)
    return merge_sources(day, code, app)
