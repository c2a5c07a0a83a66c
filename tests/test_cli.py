import json
import unittest
from unittest.mock import patch

from click.testing import CliRunner

from daily_coach import storage
from daily_coach.analyzer import AnalysisError
from daily_coach.cli import main
from daily_coach.models import CoachState, DailyStat, Insight
from tests.helpers import (
    TempDirTestCase,
    assistant_record,
    epoch_ms,
    history_entry,
    iso,
    tool_use,
    user_record,
)


class CliTestCase(TempDirTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.runner = CliRunner()

    def invoke(self, *args: str):
        base = [
            "--date",
            "2024-01-15",
            "--claude-dir",
            str(self.claude_dir),
            "--app-sessions-dir",
            str(self.app_dir),
            "--coach-dir",
            str(self.coach_dir),
        ]
        return self.runner.invoke(main, base + list(args), catch_exceptions=False)

    def populate(self) -> None:
        self.write_history(
            [
                history_entry("add login form", epoch_ms(10), "abc"),
                history_entry("fix css", epoch_ms(11), "abc", project="/home/u/site"),
            ]
        )
        self.write_transcript(
            "abc",
            [
                user_record(iso(10), cwd="/home/u/proj-x"),
                assistant_record(
                    iso(11),
                    content=[tool_use("Edit"), tool_use("Bash")],
                    usage={"input_tokens": 1200, "output_tokens": 300},
                ),
            ],
        )

    def mark_not_first_run(self) -> None:
        storage.save_state(CoachState(), self.coach_dir)


class RecapTests(CliTestCase):
    def test_no_data(self) -> None:
        result = self.invoke("recap")
        self.assertEqual(result.exit_code, 0)
        self.assertIn("No Claude Code sessions found for today.", result.output)

    def test_recap(self) -> None:
        self.populate()
        result = self.invoke("recap")
        self.assertEqual(result.exit_code, 0)
        self.assertIn("TODAY'S RECAP", result.output)
        self.assertIn("proj-x, site", result.output)
        self.assertIn("1,500", result.output)
        self.assertIn("Time: 1h 0m", result.output)
        self.assertIn("Edit, Bash", result.output)

    def test_recap_json(self) -> None:
        self.populate()
        result = self.invoke("recap", "--json")
        data = json.loads(result.output)
        self.assertEqual(data["totalTokens"], 1500)
        self.assertEqual(data["totalToolCalls"], 2)
        self.assertEqual(len(data["prompts"]), 2)


class DefaultCommandTests(CliTestCase):
    def test_first_run_shows_welcome(self) -> None:
        result = self.invoke()
        self.assertEqual(result.exit_code, 0)
        self.assertIn("WELCOME TO COACH", result.output)
        self.assertFalse(storage.is_first_run(self.coach_dir))

    def test_daily_insight(self) -> None:
        self.mark_not_first_run()
        self.populate()
        insight = Insight(dimension="Tool Leverage", lesson="Lesson text", tip="Tip text", encouragement="Well done")
        with patch("daily_coach.cli.analyzer.analyze", return_value=insight):
            result = self.invoke()

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("TODAY'S LENS: Tool Leverage", result.output)
        state = storage.load_state(self.coach_dir)
        self.assertEqual(state.streak, 1)
        self.assertEqual(state.recent_dimensions, ["Tool Leverage"])
        self.assertEqual([s.date for s in state.daily_stats], ["2024-01-15"])
        [stored] = storage.load_insights(self.coach_dir)
        self.assertEqual((stored.date, stored.rating), ("2024-01-15", None))

    def test_analysis_failure_is_reported(self) -> None:
        self.mark_not_first_run()
        self.populate()
        with patch("daily_coach.cli.analyzer.analyze", side_effect=AnalysisError("claude CLI not found")):
            result = self.invoke()
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error: claude CLI not found", result.output)

    def test_no_data_skips_analysis(self) -> None:
        self.mark_not_first_run()
        with patch("daily_coach.cli.analyzer.analyze") as analyze:
            result = self.invoke()
        analyze.assert_not_called()
        self.assertIn("No Claude Code sessions found", result.output)


class AiCommandTests(CliTestCase):
    def test_handoff(self) -> None:
        self.populate()
        note = {
            "workingOn": "Login form",
            "currentState": "Half done",
            "keyDecisions": ["Use sessions"],
            "nextSteps": ["Add tests"],
            "openQuestions": [],
        }
        with patch("daily_coach.cli.analyzer.handoff", return_value=note):
            result = self.invoke("handoff")
        self.assertIn("HANDOFF NOTE", result.output)
        self.assertIn("- Add tests", result.output)
        self.assertNotIn("Open Questions", result.output)

    def test_focus_uses_backend_options(self) -> None:
        self.populate()
        with patch("daily_coach.cli.analyzer.focus", return_value={"contextSwitches": 1}) as focus:
            result = self.invoke("--backend", "ollama", "--model", "qwen3:30b", "focus")
        self.assertIn("Context switches: 1", result.output)
        self.assertEqual(focus.call_args.kwargs["backend"], "ollama")
        self.assertEqual(focus.call_args.kwargs["model"], "qwen3:30b")

    def test_costs(self) -> None:
        self.populate()
        with patch("daily_coach.cli.analyzer.costs", return_value={"estimatedCost": "$0.01", "efficiencyTips": ["Batch"]}):
            result = self.invoke("costs")
        self.assertIn("Estimated cost: $0.01", result.output)
        self.assertIn("- Batch", result.output)


class StateCommandTests(CliTestCase):
    def test_goals_flow(self) -> None:
        self.assertIn("Goal #1 added: finish auth", self.invoke("goals", "set", "finish", "auth").output)
        self.assertIn("Goal #1 marked complete.", self.invoke("goals", "done", "1").output)
        result = self.invoke("goals", "done", "1")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("not found or already completed", result.output)
        self.assertIn("#1", self.invoke("goals").output)
        self.assertIn("Cleared 1 completed goal.", self.invoke("goals", "clear").output)

    def test_rate(self) -> None:
        storage.append_insight(
            storage.StoredInsight(dimension="d", lesson="l", tip="t", date="2024-01-15"), self.coach_dir
        )
        result = self.invoke("rate", "y")
        self.assertEqual(result.exit_code, 0)
        self.assertEqual(storage.load_state(self.coach_dir).helpful_count, 1)
        self.assertEqual(storage.load_insights(self.coach_dir)[0].rating, "helpful")
        self.assertEqual(self.invoke("rate", "maybe").exit_code, 2)

    def test_streak_and_history(self) -> None:
        storage.save_state(CoachState(streak=3, total_insights=2, helpful_count=1), self.coach_dir)
        self.assertIn("50%", self.invoke("streak").output)
        self.assertIn("No insights yet", self.invoke("history").output)

    def test_corrupt_state(self) -> None:
        self.coach_dir.mkdir(parents=True)
        (self.coach_dir / "state.json").write_text("{oops")
        result = self.invoke("streak")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Cannot read", result.output)

    def test_compare(self) -> None:
        self.populate()
        result = self.invoke("compare")
        self.assertIn("No historical data yet", result.output)

        storage.record_daily_stat(DailyStat("2024-01-14", 1, 1, 500, ["a"], 1), self.coach_dir)
        result = self.invoke("compare")
        self.assertIn("TODAY vs 7-DAY AVERAGE", result.output)
        self.assertIn("(+1000)", result.output)


if __name__ == "__main__":
    unittest.main()
