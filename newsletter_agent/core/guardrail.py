"""Deterministic fallback tiers that force an HTML artifact out of a request.

The chain is an explicit state machine::

    PLANNER_RESULT -> DONE | GUARDRAIL_DIRECT_WRITE
    GUARDRAIL_DIRECT_WRITE -> DONE | GUARDRAIL_FETCH_SUMMARIZE_RENDER
    GUARDRAIL_FETCH_SUMMARIZE_RENDER -> DONE | FAILED

``FAILED`` raises :class:`NoHtmlProducedError` carrying the planner steps.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from newsletter_agent.core.content import ContentProvider
from newsletter_agent.core.exceptions import EmptyFallbackError, NoHtmlProducedError
from newsletter_agent.core.extractor import extract_html
from newsletter_agent.core.request_logger import RequestLogger
from newsletter_agent.core.tools import ToolName, ToolRegistry, email_render_input
from newsletter_agent.models.plan import PlanStep
from newsletter_agent.models.request import NewsletterRequest

logger = logging.getLogger(__name__)

FALLBACK_SUMMARY_CHARS = 400


class GuardrailState(str, Enum):
    PLANNER_RESULT = "planner_result"
    GUARDRAIL_DIRECT_WRITE = "guardrail_direct_write"
    GUARDRAIL_FETCH_SUMMARIZE_RENDER = "guardrail_fetch_summarize_render"
    FAILED = "failed"
    DONE = "done"


@dataclass
class GuardrailOutcome:
    html: str
    source: str
    # Set when the last tier rendered a newsletter with no items.
    empty: bool = False


class GuardrailChain:
    """Resolve the final HTML from planner steps, escalating through fallbacks."""

    def __init__(
        self,
        tools: ToolRegistry,
        content: ContentProvider,
        request_logger: RequestLogger,
        allow_empty_fallback: bool = True,
    ):
        self.tools = tools
        self.content = content
        self.log = request_logger
        self.allow_empty_fallback = allow_empty_fallback

    async def resolve(
        self, request: NewsletterRequest, steps: List[PlanStep]
    ) -> GuardrailOutcome:
        state = GuardrailState.PLANNER_RESULT
        outcome: Optional[GuardrailOutcome] = None
        cause: Optional[str] = None

        while state not in (GuardrailState.DONE, GuardrailState.FAILED):
            if state is GuardrailState.PLANNER_RESULT:
                outcome = self._from_planner(steps)
                state = (
                    GuardrailState.DONE if outcome else GuardrailState.GUARDRAIL_DIRECT_WRITE
                )
            elif state is GuardrailState.GUARDRAIL_DIRECT_WRITE:
                outcome = await self._direct_write(request)
                state = (
                    GuardrailState.DONE
                    if outcome
                    else GuardrailState.GUARDRAIL_FETCH_SUMMARIZE_RENDER
                )
            elif state is GuardrailState.GUARDRAIL_FETCH_SUMMARIZE_RENDER:
                try:
                    outcome = await self._fetch_summarize_render(request)
                    state = GuardrailState.DONE
                except Exception as e:
                    cause = str(e)
                    logger.error(f"Fallback render failed for {self.log.id}: {e}")
                    self.log.error("fallback:failed", {"err": cause})
                    state = GuardrailState.FAILED

        if state is GuardrailState.FAILED or outcome is None:
            raise NoHtmlProducedError(steps=steps, cause=cause)
        return outcome

    def _from_planner(self, steps: List[PlanStep]) -> Optional[GuardrailOutcome]:
        found = extract_html(steps)
        self.log.info(
            "planner:result-picked",
            {
                "source": found[0] if found else "none",
                "html_len": len(found[1]) if found else 0,
            },
        )
        if not found:
            return None
        return GuardrailOutcome(html=found[1], source=found[0])

    async def _direct_write(self, request: NewsletterRequest) -> Optional[GuardrailOutcome]:
        self.log.step("guardrail:writer:direct")
        try:
            out = await self.tools.execute(
                ToolName.WRITE_NEWSLETTER, request.writer_arguments()
            )
        except Exception as e:
            self.log.warn("guardrail:writer:failed", {"err": str(e)})
            return None

        html = out.get("html") or ""
        if not html:
            self.log.warn("guardrail:writer:failed", {"err": "empty html"})
            return None
        self.log.info("guardrail:writer:ok", {"html_len": len(html)})
        return GuardrailOutcome(html=html, source="guardrail:write_newsletter")

    async def _fetch_summarize_render(self, request: NewsletterRequest) -> GuardrailOutcome:
        self.log.step("fallback:summaries->generate_email")
        fetched = await self.content.fetch_sources(
            topic=request.topic,
            start_date=request.start_date,
            end_date=request.end_date,
        )
        items = fetched.items
        if not items:
            self.log.info("fallback:fetch:broaden", {"topic": ""})
            retry = await self.content.fetch_sources(
                topic="",
                start_date=request.start_date,
                end_date=request.end_date,
            )
            items = retry.items

        if not items and not self.allow_empty_fallback:
            raise EmptyFallbackError("No source items found for the fallback newsletter")

        summarized = await self.content.summarize(
            [item.model_dump() for item in items], FALLBACK_SUMMARY_CHARS
        )
        rendered = await self.content.render_email(
            email_render_input(
                request, [s.model_dump() for s in summarized.summaries]
            )
        )
        if not rendered.html:
            raise EmptyFallbackError("Renderer returned no HTML")

        empty = not items
        if empty:
            self.log.warn("fallback:empty", {"items": 0})
        self.log.info(
            "fallback:ok", {"items": len(items), "html_len": len(rendered.html)}
        )
        return GuardrailOutcome(
            html=rendered.html, source="fallback:generate_email", empty=empty
        )
