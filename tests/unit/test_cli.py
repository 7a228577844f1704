"""Unit tests for query.py - argument parsing, markdown rendering and the CLI entry point."""

import io

import pytest
from rich.console import Console

import query
from src.models.analysis import ScoredCandidate, SubScores
from src.models.responses import AgentResponse, GeneralHelpData, RecipeResultsData, ResponseMetadata


@pytest.fixture
def make_response(now):
    def _make(data, message="Here you go", intent="general-help", follow_ups=()):
        return AgentResponse(
            id="resp-1",
            agent_type="sous-chef",
            message=message,
            intent=intent,
            confidence="high",
            priority="low",
            data=data,
            follow_up_suggestions=list(follow_ups),
            metadata=ResponseMetadata(timestamp=now),
        )

    return _make


@pytest.fixture
def captured_console(monkeypatch):
    buffer = io.StringIO()
    monkeypatch.setattr(query, "console", Console(file=buffer, width=120))
    return buffer


class TestParseArgs:
    def test_plain_query(self):
        assert query.parse_args(["What", "can", "I", "make?"]) == ("What can I make?", False, "evening", None)

    def test_all_flags(self):
        argv = ["--debug", "--time-of-day", "morning", "--intent", "meal-planning", "plan", "my", "week"]
        assert query.parse_args(argv) == ("plan my week", True, "morning", "meal-planning")

    def test_flags_after_query_are_query_text(self):
        assert query.parse_args(["hello", "--debug"]) == ("hello --debug", False, "evening", None)

    @pytest.mark.parametrize(
        "argv,message",
        [
            (["--verbose", "hi"], "Unknown flag: --verbose"),
            (["--time-of-day"], "--time-of-day flag requires a value"),
            (["--intent"], "--intent flag requires a value"),
            (["--time-of-day", "brunch", "hi"], "--time-of-day must be one of morning, afternoon, evening, night, got: brunch"),
            (["--intent", "chitchat", "hi"], "--intent must be one of"),
            (["--debug"], "No query provided"),
            (["--debug", "   "], "No query provided"),
        ],
    )
    def test_invalid_arguments(self, argv, message):
        with pytest.raises(ValueError) as exc_info:
            query.parse_args(argv)
        assert message in str(exc_info.value)


class TestRenderMarkdown:
    def test_general_help(self, make_response):
        response = make_response(
            GeneralHelpData(capabilities=["Find recipes", "Plan meals"]),
            follow_ups=["What can I cook tonight?", "Plan my week"],
        )

        text = query.render_markdown(response)

        assert text.splitlines()[0] == "Here you go"
        assert "- Find recipes\n- Plan meals" in text
        assert text.endswith("_What can I cook tonight? · Plan my week_")

    def test_recipe_results(self, make_response, make_recipe):
        candidate = ScoredCandidate(
            recipe=make_recipe("garlic-noodles", total_time=15),
            sub_scores=SubScores(),
            final_score=87.4,
            explanation="",
            success_probability=0.8,
            missing_ingredients=["noodles", "garlic"],
        )
        data = RecipeResultsData(
            intent="recipe-recommendation", candidates=[candidate], total_candidates=1, insights=["quick weeknight meal"]
        )

        text = query.render_markdown(make_response(data, intent="recipe-recommendation"))

        assert "1. **Garlic Noodles** (87/100, 15 min)" in text
        assert "   - Missing: noodles, garlic" in text
        assert "**Insights**\n- quick weeknight meal" in text

    def test_message_only(self, make_response):
        assert query.render_markdown(make_response(None, message="Nothing to show")) == "Nothing to show"


class TestRunQuery:
    def test_markdown_output(self, monkeypatch, make_response, captured_console):
        seen = {}

        async def fake_run(text, time_of_day, intent):
            seen.update(query=text, time_of_day=time_of_day, intent=intent)
            return make_response(GeneralHelpData(capabilities=["Find recipes"]))

        monkeypatch.setattr(query, "_run", fake_run)
        monkeypatch.setattr(query.config, "OUTPUT_FORMAT", "markdown")

        query.run_query("hello", time_of_day="night")

        assert seen == {"query": "hello", "time_of_day": "night", "intent": None}
        assert "Find recipes" in captured_console.getvalue()

    def test_debug_prints_json(self, monkeypatch, make_response, captured_console):
        async def fake_run(text, time_of_day, intent):
            return make_response(GeneralHelpData(capabilities=["Find recipes"]))

        monkeypatch.setattr(query, "_run", fake_run)

        query.run_query("hello", debug=True)

        output = captured_console.getvalue()
        assert "Debug Mode: Full Response" in output
        assert '"agent_type": "sous-chef"' in output

    def test_failure_exits_with_error(self, monkeypatch):
        async def fake_run(text, time_of_day, intent):
            raise RuntimeError("boom")

        monkeypatch.setattr(query, "_run", fake_run)

        with pytest.raises(SystemExit) as exc_info:
            query.run_query("hello")
        assert exc_info.value.code == 1


class TestMain:
    def test_no_arguments_prints_usage(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.argv", ["query.py"])

        with pytest.raises(SystemExit) as exc_info:
            query.main()

        assert exc_info.value.code == 1
        assert query.USAGE in capsys.readouterr().out

    def test_bad_flag_prints_error(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.argv", ["query.py", "--nope", "hi"])

        with pytest.raises(SystemExit):
            query.main()

        assert "Error: Unknown flag: --nope" in capsys.readouterr().out

    def test_dispatches_parsed_arguments(self, monkeypatch):
        calls = []
        monkeypatch.setattr("sys.argv", ["query.py", "--intent", "cooking-tips", "knife", "skills"])
        monkeypatch.setattr(query, "run_query", lambda q, **kwargs: calls.append((q, kwargs)))

        query.main()

        assert calls == [("knife skills", {"debug": False, "time_of_day": "evening", "intent": "cooking-tips"})]
