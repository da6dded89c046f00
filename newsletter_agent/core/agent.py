"""Request orchestration: plan, guard, deliver."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from newsletter_agent.clients.llm import LanguageModel
from newsletter_agent.core.content import ContentProvider
from newsletter_agent.core.delivery import MailTransport
from newsletter_agent.core.guardrail import GuardrailChain
from newsletter_agent.core.planner import Planner
from newsletter_agent.core.request_logger import RequestLogger
from newsletter_agent.core.tools import build_tool_registry
from newsletter_agent.core.writer import NewsletterWriter
from newsletter_agent.models.plan import PlanStep
from newsletter_agent.models.request import NewsletterRequest
from newsletter_agent.models.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class AgentResult:
    html: str
    source: str
    steps: List[PlanStep] = field(default_factory=list)
    empty: bool = False
    send: Optional[Dict[str, Any]] = None
    send_error: Optional[str] = None


class NewsletterAgent:
    """Drafts (and optionally delivers) one newsletter per request.

    The planner runs first; whatever it leaves undone is covered by the
    guardrail chain. Delivery failures are recorded on the result and never
    change its outcome.
    """

    def __init__(
        self,
        model: LanguageModel,
        content: ContentProvider,
        transport: MailTransport,
        settings: Settings,
        request_logger: RequestLogger,
    ):
        self.model = model
        self.content = content
        self.transport = transport
        self.settings = settings
        self.log = request_logger

    async def run(self, request: NewsletterRequest) -> AgentResult:
        """Produce the newsletter HTML.

        Raises:
            NoHtmlProducedError: If the planner and every fallback tier failed
        """
        tools = build_tool_registry(
            request, self.log, NewsletterWriter(self.model), self.content
        )
        planner = Planner(
            self.model, tools, self.log, max_steps=self.settings.planner_max_steps
        )
        steps = await planner.run(request)

        chain = GuardrailChain(
            tools,
            self.content,
            self.log,
            allow_empty_fallback=self.settings.allow_empty_fallback,
        )
        outcome = await chain.resolve(request, steps)

        result = AgentResult(
            html=outcome.html, source=outcome.source, steps=steps, empty=outcome.empty
        )
        if not request.dry_run and request.to and result.html:
            await self.deliver(result, str(request.to), request.title)

        self.log.done(html_len=len(result.html))
        return result

    async def deliver(self, result: AgentResult, to: str, subject: str) -> None:
        self.log.step("send:begin", to=to)
        try:
            result.send = await self.transport.send(to=to, subject=subject, html=result.html)
            self.log.info("send:ok", {"provider": result.send.get("provider")})
        except Exception as e:
            logger.warning(f"Delivery for {self.log.id} failed: {e}")
            result.send_error = str(e)
            self.log.warn("send:failed", {"err": str(e)})


def build_response_payload(
    request_logger: RequestLogger, result: AgentResult
) -> Dict[str, Any]:
    """JSON body returned for a successful draft."""
    logs = request_logger.dump()
    payload: Dict[str, Any] = {
        "reqId": request_logger.id,
        "html": result.html,
        "source": result.source,
        "debug": logs,
        "logs": logs,
        "logsPlain": request_logger.dump_plain(),
        "totalDuration": request_logger.elapsed_ms(),
        "logStats": request_logger.stats(),
    }
    if result.empty:
        payload["emptyFallback"] = True
    if result.send is not None:
        payload["send"] = result.send
    if result.send_error is not None:
        payload["sendError"] = result.send_error
    return payload
