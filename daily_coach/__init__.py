"""
Daily Coach - A daily lesson and tip from your Claude Code and Claude App usage.

Reads local session logs from ~/.claude/ (Claude Code) and the Claude desktop
app's local agent-mode sessions, aggregates one day of activity into a
DailySnapshot, and asks a language model for a coaching insight.
"""

__version__ = "0.1.0"
