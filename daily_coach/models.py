"""Data models for collected sessions, the daily snapshot, and coach state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Union

from daily_coach.helpers import to_iso

# ---------------------------------------------------------------------------
# Message content
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContentBlock:
    type: str
    text: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class PlainText:
    text: str


@dataclass(frozen=True)
class Blocks:
    blocks: tuple[ContentBlock, ...]


MessageContent = Union[PlainText, Blocks]


def parse_content(raw) -> MessageContent | None:
    """Build the content variant for a message's ``content`` field.

    A string becomes ``PlainText``; a list becomes ``Blocks`` (non-dict items
    are dropped); anything else is ``None``.
    """
    if isinstance(raw, str):
        return PlainText(raw)
    if isinstance(raw, list):
        blocks = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            text = item.get("text")
            name = item.get("name")
            blocks.append(
                ContentBlock(
                    type=str(item.get("type", "")),
                    text=text if isinstance(text, str) else None,
                    name=name if isinstance(name, str) else None,
                )
            )
        return Blocks(tuple(blocks))
    return None


def content_text(content: MessageContent | None) -> str:
    """Plain text of a message: the string itself, or text blocks joined by a space."""
    if isinstance(content, PlainText):
        return content.text
    if isinstance(content, Blocks):
        return " ".join(b.text for b in content.blocks if b.type == "text" and b.text)
    return ""


def tool_invocations(content: MessageContent | None) -> list[str]:
    """Names of the ``tool_use`` blocks in a message, in order."""
    if isinstance(content, Blocks):
        return [b.name for b in content.blocks if b.type == "tool_use" and b.name]
    return []


# ---------------------------------------------------------------------------
# Collected data
# ---------------------------------------------------------------------------


class SessionSource(str, Enum):
    CLAUDE_CODE = "claude-code"
    CLAUDE_APP = "claude-app"


@dataclass(frozen=True)
class PromptEvent:
    text: str
    timestamp: datetime
    session_id: str
    project: str

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "timestamp": to_iso(self.timestamp),
            "sessionId": self.session_id,
            "project": self.project,
        }


@dataclass(frozen=True)
class SessionSummary:
    session_id: str
    project: str
    source: SessionSource
    user_message_count: int
    assistant_message_count: int
    tool_call_count: int
    tool_names: tuple[str, ...]
    input_tokens: int
    output_tokens: int
    start_time: datetime
    end_time: datetime
    git_branch: str | None = None

    @property
    def message_count(self) -> int:
        return self.user_message_count + self.assistant_message_count

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def duration_minutes(self) -> int:
        return round((self.end_time - self.start_time).total_seconds() / 60)

    def to_dict(self) -> dict:
        data = {
            "sessionId": self.session_id,
            "project": self.project,
            "source": self.source.value,
            "messageCount": self.message_count,
            "userMessageCount": self.user_message_count,
            "assistantMessageCount": self.assistant_message_count,
            "toolCallCount": self.tool_call_count,
            "toolNames": list(self.tool_names),
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "startTime": to_iso(self.start_time),
            "endTime": to_iso(self.end_time),
        }
        if self.git_branch is not None:
            data["gitBranch"] = self.git_branch
        return data


@dataclass(frozen=True)
class DailySnapshot:
    """Everything collected for one local calendar day.

    Rollups are folds over ``sessions`` and ``prompts`` and are never stored.
    """

    date: date
    prompts: tuple[PromptEvent, ...] = ()
    sessions: tuple[SessionSummary, ...] = ()

    @property
    def total_tokens(self) -> int:
        return sum(s.input_tokens + s.output_tokens for s in self.sessions)

    @property
    def total_messages(self) -> int:
        return sum(s.message_count for s in self.sessions)

    @property
    def total_tool_calls(self) -> int:
        return sum(s.tool_call_count for s in self.sessions)

    @property
    def projects_worked_on(self) -> list[str]:
        return list(dict.fromkeys(p.project for p in self.prompts))

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "prompts": [p.to_dict() for p in self.prompts],
            "sessions": [s.to_dict() for s in self.sessions],
            "totalTokens": self.total_tokens,
            "totalMessages": self.total_messages,
            "totalToolCalls": self.total_tool_calls,
            "projectsWorkedOn": self.projects_worked_on,
        }


# ---------------------------------------------------------------------------
# Analysis results
# ---------------------------------------------------------------------------


@dataclass
class SpecificExample:
    before: str
    after: str


@dataclass
class Insight:
    dimension: str
    lesson: str
    tip: str
    specific_example: SpecificExample | None = None
    encouragement: str = ""


@dataclass
class StoredInsight(Insight):
    date: str = ""
    rating: str | None = None  # "helpful" | "not_helpful"


@dataclass
class CostEstimate:
    session_id: str
    project: str
    input_cost: float
    output_cost: float
    total_cost: float
    input_tokens: int
    output_tokens: int


# ---------------------------------------------------------------------------
# Coach state
# ---------------------------------------------------------------------------


@dataclass
class Goal:
    id: int
    text: str
    created_date: str
    completed_date: str | None = None


@dataclass
class DailyStat:
    date: str
    sessions: float
    prompts: float
    tokens: float
    projects: list[str] = field(default_factory=list)
    tool_calls: float = 0


@dataclass
class CoachState:
    streak: int = 0
    last_run_date: str | None = None
    recent_dimensions: list[str] = field(default_factory=list)
    total_insights: int = 0
    helpful_count: int = 0
    not_helpful_count: int = 0
    goals: list[Goal] = field(default_factory=list)
    daily_stats: list[DailyStat] = field(default_factory=list)
