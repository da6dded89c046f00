"""Tests for the fallback chain that guarantees an HTML artifact."""

import pytest

from newsletter_agent.core.exceptions import NoHtmlProducedError
from newsletter_agent.core.guardrail import GuardrailChain
from newsletter_agent.core.tools import build_tool_registry
from newsletter_agent.core.writer import NewsletterWriter
from newsletter_agent.models.plan import PlanStep, ToolResult
from newsletter_agent.models.request import NewsletterRequest

from conftest import FakeModel, NEWSLETTER_HTML, RecordingContent


def _chain(request_logger, content, model, request, allow_empty=True):
    tools = build_tool_registry(request, request_logger, NewsletterWriter(model), content)
    return GuardrailChain(tools, content, request_logger, allow_empty_fallback=allow_empty)


def _messages(request_logger):
    return [line["msg"] for line in request_logger.dump()]


@pytest.fixture
def request_model():
    return NewsletterRequest(
        topic="dev tools",
        start_date="2025-10-13",
        end_date="2025-10-19",
        title="Weekly Dev Digest",
    )


@pytest.mark.asyncio
async def test_planner_html_is_used_without_fallbacks(request_logger, content, request_model):
    model = FakeModel()
    steps = [
        PlanStep(
            tool_results=[
                ToolResult(call_id="c", tool_name="generate_email", output={"html": "<html>p</html>"})
            ]
        )
    ]

    outcome = await _chain(request_logger, content, model, request_model).resolve(request_model, steps)

    assert outcome.html == "<html>p</html>"
    assert outcome.source == "generate_email"
    assert model.text_calls == []
    assert content.fetch_calls == []


@pytest.mark.asyncio
async def test_direct_write_runs_once_before_fetch_tier(request_logger, content, request_model):
    model = FakeModel()

    outcome = await _chain(request_logger, content, model, request_model).resolve(request_model, [])

    assert outcome.html == NEWSLETTER_HTML
    assert outcome.source == "guardrail:write_newsletter"
    assert len(model.text_calls) == 1
    assert content.fetch_calls == []
    assert "step:guardrail:writer:direct" in _messages(request_logger)


@pytest.mark.asyncio
async def test_direct_write_gets_full_request(request_logger, content):
    request = NewsletterRequest(
        topic="dev tools",
        title="Weekly Dev Digest",
        location="Berlin",
        article_url="https://example.com/seed",
    )
    model = FakeModel()

    await _chain(request_logger, content, model, request).resolve(request, [])

    prompt = model.text_calls[0]["prompt"]
    assert "Focus on location: Berlin" in prompt
    assert "Include content from: https://example.com/seed" in prompt


@pytest.mark.asyncio
async def test_writer_failure_falls_through_to_render(request_logger, content, request_model):
    model = FakeModel(text_error=RuntimeError("writer offline"))

    outcome = await _chain(request_logger, content, model, request_model).resolve(request_model, [])

    assert len(model.text_calls) == 1
    assert outcome.source == "fallback:generate_email"
    assert "<title>Weekly Dev Digest</title>" in outcome.html
    assert content.fetch_calls == [
        {"topic": "dev tools", "start_date": "2025-10-13", "end_date": "2025-10-19"}
    ]
    messages = _messages(request_logger)
    assert messages.index("guardrail:writer:failed") < messages.index(
        "step:fallback:summaries->generate_email"
    )


@pytest.mark.asyncio
async def test_empty_writer_html_falls_through(request_logger, content, request_model):
    model = FakeModel(text="   ")

    outcome = await _chain(request_logger, content, model, request_model).resolve(request_model, [])

    assert outcome.source == "fallback:generate_email"


@pytest.mark.asyncio
async def test_zero_items_retries_once_with_empty_topic(request_logger, request_model):
    content = RecordingContent(posts=[])
    model = FakeModel(text_error=RuntimeError("writer offline"))

    outcome = await _chain(request_logger, content, model, request_model).resolve(request_model, [])

    assert [call["topic"] for call in content.fetch_calls] == ["dev tools", ""]
    assert all(call["start_date"] == "2025-10-13" for call in content.fetch_calls)
    assert outcome.empty is True
    assert "<h1" in outcome.html


@pytest.mark.asyncio
async def test_empty_render_refused_when_policy_disallows(request_logger, request_model):
    content = RecordingContent(posts=[])
    model = FakeModel(text_error=RuntimeError("writer offline"))
    chain = _chain(request_logger, content, model, request_model, allow_empty=False)

    with pytest.raises(NoHtmlProducedError):
        await chain.resolve(request_model, [])

    assert len(content.fetch_calls) == 2


@pytest.mark.asyncio
async def test_fetch_tier_failure_is_terminal_with_steps(request_logger, request_model):
    content = RecordingContent(fail_fetch=RuntimeError("feed down"))
    model = FakeModel(text_error=RuntimeError("writer offline"))
    steps = [PlanStep(text="gave up")]

    with pytest.raises(NoHtmlProducedError) as exc_info:
        await _chain(request_logger, content, model, request_model).resolve(request_model, steps)

    assert exc_info.value.steps == steps
    assert exc_info.value.cause == "feed down"
    assert str(exc_info.value) == "No HTML produced by the agent and fallback failed."
    assert "fallback:failed" in _messages(request_logger)


@pytest.mark.asyncio
async def test_render_failure_is_terminal(request_logger, request_model):
    content = RecordingContent(fail_render=RuntimeError("template broken"))
    model = FakeModel(text_error=RuntimeError("writer offline"))

    with pytest.raises(NoHtmlProducedError):
        await _chain(request_logger, content, model, request_model).resolve(request_model, [])
