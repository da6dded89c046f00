"""Tests for picking the final HTML out of planner steps."""

from newsletter_agent.core.extractor import extract_html
from newsletter_agent.models.plan import PlanStep, ToolResult


def _step(*results):
    return PlanStep(tool_results=list(results))


def _result(tool, html=None, error=None):
    return ToolResult(
        call_id=f"{tool}-1",
        tool_name=tool,
        output=None if error else {"html": html},
        error=error,
    )


def test_writer_html_wins_over_generated_email():
    steps = [
        _step(_result("generate_email", "<html>email</html>")),
        _step(_result("write_newsletter", "<html>written</html>")),
    ]

    assert extract_html(steps) == ("write_newsletter", "<html>written</html>")


def test_generated_email_used_when_writer_missing():
    steps = [_step(_result("fetch_sources", None)), _step(_result("generate_email", "<html>e</html>"))]

    assert extract_html(steps) == ("generate_email", "<html>e</html>")


def test_empty_and_failed_results_ignored():
    steps = [
        _step(
            _result("write_newsletter", ""),
            _result("write_newsletter", error="boom"),
            _result("generate_email", "<html>e</html>"),
        )
    ]

    assert extract_html(steps) == ("generate_email", "<html>e</html>")


def test_first_matching_result_wins():
    steps = [_step(_result("generate_email", "<html>1</html>"), _result("generate_email", "<html>2</html>"))]

    assert extract_html(steps)[1] == "<html>1</html>"


def test_nothing_found():
    assert extract_html([]) is None
    assert extract_html([_step(_result("rewrite_tone", "<html>x</html>"))]) is None
