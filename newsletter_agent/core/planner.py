"""Model-driven planning loop over the tool registry."""

import logging
from typing import List

from newsletter_agent.clients.llm import LanguageModel
from newsletter_agent.core.request_logger import RequestLogger
from newsletter_agent.core.tools import ToolRegistry
from newsletter_agent.models.plan import PlanStep
from newsletter_agent.models.request import NewsletterRequest

logger = logging.getLogger(__name__)

PLANNER_TEMPERATURE = 0.2

SYSTEM_PROMPT = "\n".join(
    [
        "You are a professional newsletter agent that creates high-quality, data-driven newsletters.",
        "IMPORTANT: You MUST use the structured workflow for the best results. Do NOT skip to write_newsletter() immediately.",
        "REQUIRED workflow (follow these steps in order):",
        "1. ALWAYS start by calling fetch_sources() to get recent, relevant content for the topic and date range",
        "2. Then call summarize() to create concise summaries of the fetched content",
        "3. Next, call build_outline() to create a structured outline based on the topic and sections",
        "4. Then call compose_sections() to write full sections using the outline and summaries",
        "5. Optionally call pick_ctas() to suggest relevant call-to-action items",
        "6. Finally, call generate_email() to create the final HTML newsletter",
        "Only use write_newsletter() as a last resort fallback if the structured approach completely fails.",
        "The structured approach produces much better, more factual newsletters with real data and proper organization.",
        "Never finish without returning an HTML document.",
    ]
)


def build_user_prompt(request: NewsletterRequest) -> str:
    """Restate the request in prose for the planner."""
    prompt = (
        f"Create a comprehensive, data-driven newsletter about {request.topic} for "
        f"{request.start_date or '(no start)'} to {request.end_date or '(no end)'} "
        f"titled {request.title}."
        " Please use the structured workflow: fetch recent sources, summarize them,"
        " build an outline, compose sections, and generate the final newsletter."
    )
    if request.newsletter_type:
        prompt += f" Newsletter type: {request.newsletter_type}."
    if request.tone_text:
        prompt += f" Tone: {request.tone_text}."
    if request.sections:
        prompt += f" Create {request.sections} sections."
    if request.features:
        prompt += f" Include these content features: {', '.join(request.features)}."
    if request.location:
        prompt += f" Focus on location: {request.location}."
    if request.key_details:
        prompt += f" Key details to highlight: {request.key_details}."
    if request.content:
        prompt += f" Additional content context: {request.content}."
    if request.links:
        prompt += f" Include these relevant links: {', '.join(request.links)}."
    if request.preset:
        prompt += f" Use {request.preset} preset style and structure."
    if request.article_url:
        prompt += f" Also include content from: {request.article_url}"
    return prompt


class Planner:
    """Runs the model's tool-calling loop once for a request."""

    def __init__(
        self,
        model: LanguageModel,
        tools: ToolRegistry,
        request_logger: RequestLogger,
        max_steps: int = 10,
    ):
        self.model = model
        self.tools = tools
        self.log = request_logger
        self.max_steps = max_steps

    async def run(self, request: NewsletterRequest) -> List[PlanStep]:
        """Return the ordered plan steps.

        When the model fails mid-run, the steps completed before the failure
        are kept so their tool results still reach the extractor.
        """
        self.log.step("planner:start")
        try:
            result = await self.model.generate_text(
                system=SYSTEM_PROMPT,
                prompt=build_user_prompt(request),
                tools=self.tools,
                temperature=PLANNER_TEMPERATURE,
                max_steps=self.max_steps,
            )
            steps = result.steps
        except Exception as e:
            logger.warning(f"Planner run failed: {e}")
            steps = list(getattr(e, "steps", None) or [])
            self.log.error("planner:failed", {"err": str(e), "completedSteps": len(steps)})

        self.log.step("planner:finish", steps=len(steps))
        for index, step in enumerate(steps):
            self.log.debug(
                "planner:step",
                {
                    "idx": index,
                    "finishReason": step.finish_reason.value,
                    "toolCalls": [c.tool_name for c in step.tool_calls],
                    "toolResults": [r.tool_name for r in step.tool_results],
                },
            )
        return steps
