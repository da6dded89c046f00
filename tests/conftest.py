from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pytest
from pydantic import TypeAdapter

from newsletter_agent.clients.llm import LanguageModel, ToolSet
from newsletter_agent.core.content import MockContentProvider
from newsletter_agent.core.log_cache import LogCache
from newsletter_agent.core.request_logger import RequestLogger
from newsletter_agent.models.plan import FinishReason, PlanStep, TextGeneration, ToolCall
from newsletter_agent.models.settings import Settings

ArgsSpec = Union[Dict[str, Any], Callable[[Dict[str, Dict[str, Any]]], Dict[str, Any]]]
PlanBatch = List[Tuple[str, ArgsSpec]]

NEWSLETTER_HTML = (
    "<!doctype html><html><head><title>Written</title></head>"
    "<body><h1>Written by the model</h1></body></html>"
)

STRUCTURED_DEFAULTS = {
    "outline": [
        {"id": 1, "title": "Editors", "blurb": "New editors.", "word_goal": 150},
        {"id": 2, "title": "Debuggers", "blurb": "Better debugging.", "word_goal": 150},
    ],
    "sections": [
        {
            "id": 1,
            "title": "Editors worth trying",
            "bodyHtml": "<p>Editors keep getting faster.</p>",
            "key_takeaways": ["Try one new editor"],
        },
        {
            "id": 2,
            "title": "Debugging, improved",
            "bodyHtml": "<p>Time-travel debugging goes mainstream.</p>",
            "key_takeaways": [],
        },
    ],
    "ctas": [
        {"title": "Join", "text": "Join the community", "url": "https://example.com/join"}
    ],
}

# fetch -> summarize -> outline -> compose -> ctas -> generate_email
STRUCTURED_PLAN: List[PlanBatch] = [
    [("fetch_sources", {})],
    [("summarize", lambda r: {"items": r["fetch_sources"]["items"], "max_chars": 300})],
    [("build_outline", {"sections": 2})],
    [
        (
            "compose_sections",
            lambda r: {
                "outline": r["build_outline"]["outline"],
                "summaries": r["summarize"]["summaries"],
                "tone": ["friendly", "concise"],
            },
        )
    ],
    [("pick_ctas", {})],
    [
        (
            "generate_email",
            lambda r: {
                "items": r["compose_sections"]["sections"],
                "ctas": r["pick_ctas"]["ctas"],
            },
        )
    ],
]


class FakeModel(LanguageModel):
    """Scripted language model.

    With tools, replays ``plan`` through the registry one batch per step.
    Without tools, returns ``text`` (or raises ``text_error``). Structured
    calls answer from ``structured`` keyed by outline/sections/ctas.
    """

    def __init__(
        self,
        plan: Optional[List[PlanBatch]] = None,
        text: str = NEWSLETTER_HTML,
        text_error: Optional[Exception] = None,
        planner_error: Optional[Exception] = None,
        structured: Optional[Dict[str, Any]] = None,
    ):
        self.plan = plan or []
        self.text = text
        self.text_error = text_error
        self.planner_error = planner_error
        self.structured = dict(STRUCTURED_DEFAULTS, **(structured or {}))
        self.text_calls: List[Dict[str, Any]] = []
        self.planner_calls: List[Dict[str, Any]] = []
        self.structured_calls: List[str] = []

    async def generate_text(
        self,
        system: str,
        prompt: str,
        tools: Optional[ToolSet] = None,
        temperature: float = 0.3,
        max_steps: int = 1,
    ) -> TextGeneration:
        call = {"system": system, "prompt": prompt, "temperature": temperature, "max_steps": max_steps}
        if tools is None:
            self.text_calls.append(call)
            if self.text_error:
                raise self.text_error
            return TextGeneration(text=self.text)

        self.planner_calls.append(call)
        if self.planner_error:
            raise self.planner_error
        outputs: Dict[str, Dict[str, Any]] = {}
        steps = []
        for index, batch in enumerate(self.plan[:max_steps]):
            step = PlanStep(finish_reason=FinishReason.TOOL_CALLS)
            for position, (name, spec) in enumerate(batch):
                args = spec(outputs) if callable(spec) else spec
                tool_call = ToolCall(call_id=f"call_{index}_{position}", tool_name=name, args=args)
                step.tool_calls.append(tool_call)
                result = await tools.invoke(tool_call)
                step.tool_results.append(result)
                if result.output is not None:
                    outputs[name] = result.output
            steps.append(step)
        steps.append(PlanStep(text="Done.", finish_reason=FinishReason.STOP))
        return TextGeneration(text="Done.", steps=steps)

    async def generate_structured(
        self, schema: Any, prompt: str, input: Any = None, temperature: float = 0.2
    ) -> Any:
        self.structured_calls.append(prompt)
        if "outline" in prompt.lower() and "Create" in prompt:
            key = "outline"
        elif "sections" in prompt:
            key = "sections"
        else:
            key = "ctas"
        value = self.structured[key]
        if isinstance(value, Exception):
            raise value
        return TypeAdapter(schema).validate_python(value)


class RecordingContent(MockContentProvider):
    """Mock corpus that records fetch calls and can be told to fail."""

    def __init__(self, fail_fetch: Optional[Exception] = None, fail_render: Optional[Exception] = None, **kwargs):
        super().__init__(**kwargs)
        self.fail_fetch = fail_fetch
        self.fail_render = fail_render
        self.fetch_calls: List[Dict[str, Any]] = []

    async def fetch_sources(self, topic, start_date=None, end_date=None):
        self.fetch_calls.append({"topic": topic, "start_date": start_date, "end_date": end_date})
        if self.fail_fetch:
            raise self.fail_fetch
        return await super().fetch_sources(topic, start_date, end_date)

    async def render_email(self, data):
        if self.fail_render:
            raise self.fail_render
        return await super().render_email(data)


@pytest.fixture
def settings():
    """Settings isolated from the environment's .env file."""
    return Settings(_env_file=None, openrouter_api_key="test_key")


@pytest.fixture
def log_cache():
    return LogCache(max_entries=10, ttl_seconds=60)


@pytest.fixture
def request_logger(log_cache):
    return RequestLogger.create(log_cache)


@pytest.fixture
def content():
    return RecordingContent()
