"""Fixture builders for on-disk Claude Code and Claude App logs."""

from __future__ import annotations

import json
import tempfile
import unittest
from datetime import date, datetime
from pathlib import Path

DAY = date(2024, 1, 15)


def local_dt(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    """Aware datetime for a local wall-clock time, valid in any machine timezone."""
    return datetime(day.year, day.month, day.day, hour, minute).astimezone()


def iso(hour: int, minute: int = 0, day: date = DAY) -> str:
    return local_dt(hour, minute, day).isoformat()


def epoch_ms(hour: int, minute: int = 0, day: date = DAY) -> int:
    return int(local_dt(hour, minute, day).timestamp() * 1000)


def write_jsonl(path: Path, records: list, raw_lines: list[str] | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
    lines += raw_lines or []
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


class TempDirTestCase(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.root = Path(tmpdir.name)
        self.claude_dir = self.root / "claude"
        self.app_dir = self.root / "app-sessions"
        self.coach_dir = self.root / "coach"

    # Claude Code -----------------------------------------------------------

    def write_history(self, entries: list, raw_lines: list[str] | None = None) -> Path:
        return write_jsonl(self.claude_dir / "history.jsonl", entries, raw_lines)

    def write_transcript(
        self,
        session_id: str,
        records: list,
        project_dir: str = "-home-u-proj-x",
        raw_lines: list[str] | None = None,
    ) -> Path:
        path = self.claude_dir / "projects" / project_dir / f"{session_id}.jsonl"
        return write_jsonl(path, records, raw_lines)

    # Claude App ------------------------------------------------------------

    def write_app_session(
        self,
        name: str,
        records: list,
        meta: dict | str | None = None,
        workspace: str = "ws-1",
        user: str = "user-1",
    ) -> Path:
        user_dir = self.app_dir / workspace / user
        audit = write_jsonl(user_dir / name / "audit.jsonl", records)
        if meta is not None:
            text = meta if isinstance(meta, str) else json.dumps(meta)
            (user_dir / f"{name}.json").write_text(text, encoding="utf-8")
        return audit


def history_entry(text: str, ts, session_id: str, project: str = "/home/u/proj-x") -> dict:
    return {
        "display": text,
        "pastedContents": {},
        "timestamp": ts,
        "project": project,
        "sessionId": session_id,
    }


def user_record(ts: str, session_id: str = "abc", content="hello", **extra) -> dict:
    record = {
        "type": "user",
        "timestamp": ts,
        "sessionId": session_id,
        "message": {"role": "user", "content": content},
    }
    record.update(extra)
    return record


def assistant_record(
    ts: str,
    session_id: str = "abc",
    content=None,
    usage: dict | None = None,
    **extra,
) -> dict:
    message = {"role": "assistant", "content": content if content is not None else "ok"}
    if usage is not None:
        message["usage"] = usage
    record = {"type": "assistant", "timestamp": ts, "sessionId": session_id, "message": message}
    record.update(extra)
    return record


def tool_use(name: str) -> dict:
    return {"type": "tool_use", "id": f"toolu_{name}", "name": name, "input": {}}


def audit_record(kind: str, ts: str, content, session_id: str = "app-1") -> dict:
    return {
        "type": kind,
        "uuid": f"{kind}-{ts}",
        "session_id": session_id,
        "parent_tool_use_id": None,
        "message": {"role": kind, "content": content},
        "_audit_timestamp": ts,
    }
