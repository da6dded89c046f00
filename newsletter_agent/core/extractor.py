"""Pick the final HTML out of a planner run."""

from typing import Iterator, List, Optional, Tuple

from newsletter_agent.core.tools import ToolName
from newsletter_agent.models.plan import PlanStep, ToolResult

# Earlier entries win.
HTML_SOURCES = (ToolName.WRITE_NEWSLETTER, ToolName.GENERATE_EMAIL)


def _tool_results(steps: List[PlanStep]) -> Iterator[ToolResult]:
    for step in steps:
        yield from step.tool_results


def extract_html(steps: List[PlanStep]) -> Optional[Tuple[str, str]]:
    """Return ``(source_tool, html)`` for the best HTML result, or None."""
    results = list(_tool_results(steps))
    for source in HTML_SOURCES:
        for result in results:
            if result.tool_name != source.value or result.is_error:
                continue
            html = (result.output or {}).get("html")
            if isinstance(html, str) and html:
                return source.value, html
    return None
