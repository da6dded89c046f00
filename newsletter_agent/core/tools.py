"""Tool registry exposed to the planner model.

Tools form a closed set (:class:`ToolName`). Each tool has a typed pydantic
input model, whose JSON schema is what the model sees, and an executor that
closes over the current request so omitted arguments fall back to the request's
values. Every execution is recorded in the request log with its timing.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field

from newsletter_agent.core.content import ContentProvider
from newsletter_agent.core.exceptions import UnknownToolError
from newsletter_agent.core.request_logger import RequestLogger
from newsletter_agent.core.writer import NewsletterWriter
from newsletter_agent.models.content import CTALink, EmailRenderInput
from newsletter_agent.models.plan import ToolCall, ToolResult
from newsletter_agent.models.request import NewsletterRequest

logger = logging.getLogger(__name__)


class ToolName(str, Enum):
    FETCH_SOURCES = "fetch_sources"
    SUMMARIZE = "summarize"
    BUILD_OUTLINE = "build_outline"
    COMPOSE_SECTIONS = "compose_sections"
    PICK_CTAS = "pick_ctas"
    REWRITE_TONE = "rewrite_tone"
    WRITE_NEWSLETTER = "write_newsletter"
    GENERATE_EMAIL = "generate_email"


class ToolInput(BaseModel):
    model_config = ConfigDict(extra="ignore")


class FetchSourcesInput(ToolInput):
    topic: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class SummarizeInput(ToolInput):
    items: List[Dict[str, Any]]
    max_chars: Optional[int] = None


class BuildOutlineInput(ToolInput):
    topic: Optional[str] = None
    sections: Optional[int] = Field(None, ge=2, le=8)


class SummaryRef(BaseModel):
    title: str
    url: str
    summary: str
    published: str


class ComposeSectionsInput(ToolInput):
    outline: List[Dict[str, Any]]
    summaries: List[SummaryRef]
    tone: Optional[Union[str, List[str]]] = None


class PickCTAsInput(ToolInput):
    topic: Optional[str] = None


class RewriteToneInput(ToolInput):
    html: str
    tone: str


class DescriptiveInput(ToolInput):
    title: Optional[str] = None
    intro: Optional[str] = None
    newsletter_type: Optional[str] = None
    features: Optional[List[str]] = None
    links: Optional[List[str]] = None
    location: Optional[str] = None
    content: Optional[str] = None
    key_details: Optional[str] = None
    tone: Optional[Union[str, List[str]]] = None
    sections: Optional[int] = Field(None, ge=2, le=8)
    preset: Optional[str] = None


class WriteNewsletterInput(DescriptiveInput):
    topic: Optional[str] = None
    article_html: Optional[str] = None
    article_url: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class GenerateEmailInput(DescriptiveInput):
    items: List[Dict[str, Any]]
    ctas: Optional[List[CTALink]] = None


Executor = Callable[[Any], Awaitable[BaseModel]]


@dataclass
class Tool:
    """A named operation the planner (or a fallback) can invoke."""

    name: ToolName
    description: str
    input_model: Type[ToolInput]
    run: Executor
    # Shapes the output recorded in the log; defaults to the full output.
    log_output: Optional[Callable[[Dict[str, Any]], Any]] = None

    def declaration(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name.value,
                "description": self.description,
                "parameters": self.input_model.model_json_schema(),
            },
        }


class ToolRegistry:
    """Fixed mapping of tool name to tool, bound to one request."""

    def __init__(self, tools: Iterable[Tool], request_logger: RequestLogger):
        self._tools: Dict[ToolName, Tool] = {tool.name: tool for tool in tools}
        self.log = request_logger

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> List[str]:
        return [name.value for name in self._tools]

    def get(self, name: Union[str, ToolName]) -> Tool:
        try:
            return self._tools[ToolName(name)]
        except (ValueError, KeyError):
            raise UnknownToolError(str(name)) from None

    def declarations(self) -> List[Dict[str, Any]]:
        return [tool.declaration() for tool in self._tools.values()]

    async def execute(self, name: Union[str, ToolName], args: Dict[str, Any]) -> Dict[str, Any]:
        """Run a tool with raw arguments and return its output as a dict.

        The call, the result and any failure are logged; failures re-raise.
        """
        tool = self.get(name)
        call_id = self.log.tool_call(tool.name.value, args)
        try:
            parsed = tool.input_model.model_validate(args or {})
            output = await tool.run(parsed)
            result = output.model_dump(mode="json", by_alias=True)
        except Exception as e:
            self.log.tool_error(tool.name.value, e, call_id)
            raise
        logged = tool.log_output(result) if tool.log_output else result
        self.log.tool_result(tool.name.value, logged, call_id, success=True)
        return result

    async def invoke(self, call: ToolCall) -> ToolResult:
        """Run a planner tool call, reporting failures as error results."""
        try:
            output = await self.execute(call.tool_name, call.args)
        except UnknownToolError as e:
            self.log.warn("tool:unknown", {"name": call.tool_name})
            return ToolResult(call_id=call.call_id, tool_name=call.tool_name, error=str(e))
        except Exception as e:
            return ToolResult(call_id=call.call_id, tool_name=call.tool_name, error=str(e))
        return ToolResult(call_id=call.call_id, tool_name=call.tool_name, output=output)


def _pick(value: Any, default: Any) -> Any:
    return default if value is None else value


def _tone_text(tone: Union[str, List[str], None]) -> Optional[str]:
    return ", ".join(tone) if isinstance(tone, list) else tone


def _html_length(result: Dict[str, Any]) -> Dict[str, int]:
    return {"html_len": len(result.get("html") or "")}


def email_render_input(
    request: NewsletterRequest,
    items: List[Dict[str, Any]],
    overrides: Optional[DescriptiveInput] = None,
    ctas: Optional[List[CTALink]] = None,
) -> EmailRenderInput:
    """Renderer input from the request, with optional tool-argument overrides."""
    o = overrides or DescriptiveInput()
    return EmailRenderInput(
        title=_pick(o.title, request.title),
        intro=_pick(o.intro, request.intro or f"Curated updates on {request.topic}."),
        newsletter_type=_pick(o.newsletter_type, request.newsletter_type),
        features=_pick(o.features, request.features),
        links=_pick(o.links, request.links),
        location=_pick(o.location, request.location),
        content=_pick(o.content, request.content),
        key_details=_pick(o.key_details, request.key_details),
        tone=_tone_text(_pick(o.tone, request.tone)),
        sections=_pick(o.sections, request.sections),
        preset=_pick(o.preset, request.preset),
        items=items,
        ctas=ctas or [],
    )


def build_tool_registry(
    request: NewsletterRequest,
    request_logger: RequestLogger,
    writer: NewsletterWriter,
    content: ContentProvider,
) -> ToolRegistry:
    """Build the request-bound tool registry."""

    async def fetch_sources(args: FetchSourcesInput):
        return await content.fetch_sources(
            topic=_pick(args.topic, request.topic),
            start_date=_pick(args.start_date, request.start_date),
            end_date=_pick(args.end_date, request.end_date),
        )

    async def summarize(args: SummarizeInput):
        return await content.summarize(args.items, args.max_chars)

    async def build_outline(args: BuildOutlineInput):
        return await writer.build_outline(
            topic=_pick(args.topic, request.topic),
            sections=_pick(args.sections, request.sections),
        )

    async def compose_sections(args: ComposeSectionsInput):
        return await writer.compose_sections(
            outline=args.outline,
            summaries=[s.model_dump() for s in args.summaries],
            tone=_tone_text(_pick(args.tone, request.tone)),
        )

    async def pick_ctas(args: PickCTAsInput):
        return await writer.pick_ctas(topic=_pick(args.topic, request.topic))

    async def rewrite_tone(args: RewriteToneInput):
        return await writer.rewrite_tone(html=args.html, tone=args.tone)

    async def write_newsletter(args: WriteNewsletterInput):
        defaults = request.writer_arguments()
        values = {
            name: _pick(getattr(args, name), defaults.get(name))
            for name in WriteNewsletterInput.model_fields
        }
        request_logger.model_call(
            "generateText:start", {"promptMeta": {"title": values.get("title")}}
        )
        out = await writer.write_newsletter(values)
        request_logger.model_call("generateText:finish", {"chars": len(out.html)})
        return out

    async def generate_email(args: GenerateEmailInput):
        return await content.render_email(
            email_render_input(request, args.items, overrides=args, ctas=args.ctas)
        )

    tools = [
        Tool(
            ToolName.FETCH_SOURCES,
            "Fetch recent content for a topic within a date range.",
            FetchSourcesInput,
            fetch_sources,
        ),
        Tool(
            ToolName.SUMMARIZE,
            "Summarize a list of items into short blurbs.",
            SummarizeInput,
            summarize,
        ),
        Tool(
            ToolName.BUILD_OUTLINE,
            "Create an outline for the newsletter. Returns { outline }.",
            BuildOutlineInput,
            build_outline,
        ),
        Tool(
            ToolName.COMPOSE_SECTIONS,
            "Compose full sections from outline + factual summaries. Returns { sections }.",
            ComposeSectionsInput,
            compose_sections,
        ),
        Tool(
            ToolName.PICK_CTAS,
            "Suggest up to two CTAs. Returns { ctas }.",
            PickCTAsInput,
            pick_ctas,
        ),
        Tool(
            ToolName.REWRITE_TONE,
            "Rewrite final HTML to a desired tone. Returns { html }.",
            RewriteToneInput,
            rewrite_tone,
            log_output=_html_length,
        ),
        Tool(
            ToolName.WRITE_NEWSLETTER,
            "Write a complete HTML newsletter",
            WriteNewsletterInput,
            write_newsletter,
            log_output=_html_length,
        ),
        Tool(
            ToolName.GENERATE_EMAIL,
            "Render HTML email from items",
            GenerateEmailInput,
            generate_email,
            log_output=_html_length,
        ),
    ]
    return ToolRegistry(tools, request_logger)
