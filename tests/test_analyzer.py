import json
import random
import subprocess
import unittest
from unittest.mock import patch

from daily_coach import analyzer
from daily_coach.analyzer import AnalysisError
from daily_coach.models import DailySnapshot, PromptEvent, SessionSource, SessionSummary
from tests.helpers import DAY, local_dt


def _snapshot(n_prompts=3, projects=("alpha",), tokens=(1000, 200), tools=2) -> DailySnapshot:
    prompts = tuple(
        PromptEvent(
            text=f"prompt {i}",
            timestamp=local_dt(9, i),
            session_id="abcdef123456",
            project=projects[i % len(projects)],
        )
        for i in range(n_prompts)
    )
    session = SessionSummary(
        session_id="abcdef123456",
        project=projects[0],
        source=SessionSource.CLAUDE_CODE,
        user_message_count=n_prompts,
        assistant_message_count=n_prompts,
        tool_call_count=tools,
        tool_names=("Read",),
        input_tokens=tokens[0],
        output_tokens=tokens[1],
        start_time=local_dt(9),
        end_time=local_dt(9, 45),
        git_branch="main",
    )
    return DailySnapshot(date=DAY, prompts=prompts, sessions=(session,))


class CostTests(unittest.TestCase):
    def test_sonnet_pricing(self) -> None:
        [cost] = analyzer.estimate_costs(_snapshot(tokens=(1_000_000, 100_000)))
        self.assertEqual(cost.session_id, "abcdef12")
        self.assertAlmostEqual(cost.input_cost, 3.0)
        self.assertAlmostEqual(cost.output_cost, 1.5)
        self.assertAlmostEqual(cost.total_cost, 4.5)


class PickDimensionTests(unittest.TestCase):
    def test_avoids_recent_dimensions(self) -> None:
        recent = analyzer.DIMENSIONS[:4]
        for seed in range(20):
            with self.subTest(seed=seed):
                picked = analyzer.pick_dimension(recent, _snapshot(), random.Random(seed))
                self.assertNotIn(picked, recent)

    def test_all_recent_falls_back_to_everything(self) -> None:
        picked = analyzer.pick_dimension(analyzer.DIMENSIONS, _snapshot(), random.Random(1))
        self.assertIn(picked, analyzer.DIMENSIONS)

    def test_many_projects_boosts_focus(self) -> None:
        snapshot = _snapshot(n_prompts=6, projects=("a", "b", "c"))
        for seed in range(10):
            # one session with 6 prompts also boosts Problem Decomposition by 1.5
            picked = analyzer.pick_dimension([], snapshot, random.Random(seed))
            self.assertIn(picked, ("Focus & Deep Work", "Problem Decomposition"))


class PromptBuilderTests(unittest.TestCase):
    def test_insight_prompt_mentions_data(self) -> None:
        prompt = analyzer.build_insight_prompt(_snapshot(), "Tool Leverage", [])
        self.assertIn("Today's Analysis Dimension: Tool Leverage", prompt)
        self.assertIn("Date: 2024-01-15", prompt)
        self.assertIn('"prompt 0"', prompt)
        self.assertIn('"duration": "45min"', prompt)
        self.assertNotIn("Past Insight Ratings", prompt)

    def test_focus_prompt_lists_switches(self) -> None:
        snapshot = _snapshot(n_prompts=3, projects=("a", "b"))
        self.assertEqual(len(analyzer.project_switches(snapshot)), 2)
        prompt = analyzer.build_focus_prompt(snapshot)
        self.assertIn('"contextSwitches": 2', prompt)
        self.assertIn("a → b at ", prompt)

    def test_costs_prompt_totals(self) -> None:
        snapshot = _snapshot(tokens=(2_000_000, 0))
        prompt = analyzer.build_costs_prompt(snapshot, analyzer.estimate_costs(snapshot))
        self.assertIn("Total estimated cost: $6.0000", prompt)
        self.assertIn("Total input tokens: 2,000,000", prompt)

    def test_handoff_prompt_has_branch(self) -> None:
        self.assertIn('"branch": "main"', analyzer.build_handoff_prompt(_snapshot()))


class ReplyParsingTests(unittest.TestCase):
    def test_plain_and_fenced(self) -> None:
        for text in ('{"a": 1}', '```json\n{"a": 1}\n```', '```\n{"a": 1}```', '  {"a": 1}\n'):
            with self.subTest(text=text):
                self.assertEqual(analyzer.parse_json_reply(text), {"a": 1})

    def test_invalid_replies(self) -> None:
        for text in ("Sure! Here you go", "[1, 2]", ""):
            with self.subTest(text=text):
                with self.assertRaises(AnalysisError):
                    analyzer.parse_json_reply(text)


class RunClaudeTests(unittest.TestCase):
    def test_sends_prompt_on_stdin(self) -> None:
        done = subprocess.CompletedProcess(args=[], returncode=0, stdout=' {"ok": true}\n', stderr="")
        with patch("daily_coach.analyzer.subprocess.run", return_value=done) as run:
            self.assertEqual(analyzer.run_claude("hello", model="sonnet"), '{"ok": true}')
        args, kwargs = run.call_args
        self.assertEqual(args[0], ["claude", "-p", "--output-format", "text", "--model", "sonnet"])
        self.assertEqual(kwargs["input"], "hello")

    def test_missing_cli(self) -> None:
        with patch("daily_coach.analyzer.subprocess.run", side_effect=FileNotFoundError):
            with self.assertRaisesRegex(AnalysisError, "claude CLI not found"):
                analyzer.run_claude("hello")

    def test_non_zero_exit(self) -> None:
        failed = subprocess.CompletedProcess(args=[], returncode=2, stdout="", stderr="")
        with patch("daily_coach.analyzer.subprocess.run", return_value=failed):
            with self.assertRaisesRegex(AnalysisError, "exited with code 2"):
                analyzer.run_claude("hello")

    def test_unknown_backend(self) -> None:
        with self.assertRaises(AnalysisError):
            analyzer.run_llm("hello", backend="gpt")


class AnalyzeTests(unittest.TestCase):
    def test_builds_insight_from_reply(self) -> None:
        reply = json.dumps(
            {
                "dimension": "Tool Leverage",
                "lesson": "You read files one at a time.",
                "tip": "Batch reads.",
                "specificExample": {"before": "read a", "after": "read a, b and c"},
                "encouragement": "Good commit hygiene.",
            }
        )
        with patch("daily_coach.analyzer.run_llm", return_value=reply) as run_llm:
            insight = analyzer.analyze(_snapshot(), [], [], backend="ollama", model="m", rng=random.Random(0))
        self.assertEqual(insight.dimension, "Tool Leverage")
        self.assertEqual(insight.specific_example.after, "read a, b and c")
        self.assertEqual(run_llm.call_args.args[1:3], ("ollama", "m"))

    def test_null_example(self) -> None:
        reply = '{"lesson": "l", "tip": "t", "specificExample": null, "encouragement": "e"}'
        with patch("daily_coach.analyzer.run_llm", return_value=reply):
            insight = analyzer.analyze(_snapshot(), [], [], rng=random.Random(0))
        self.assertIsNone(insight.specific_example)
        self.assertIn(insight.dimension, analyzer.DIMENSIONS)


if __name__ == "__main__":
    unittest.main()
