"""Error types raised by the newsletter agent."""

from typing import List, Optional

from newsletter_agent.models.plan import PlanStep


class NewsletterAgentError(Exception):
    """Base class for agent errors."""


class ModelUnavailableError(NewsletterAgentError):
    """The language model backend could not be initialised."""


class ModelResponseError(NewsletterAgentError):
    """The language model call failed or returned unusable output.

    ``steps`` holds the plan steps completed before a tool loop failed.
    """

    def __init__(self, message: str, steps: Optional[List[PlanStep]] = None):
        super().__init__(message)
        self.steps = steps or []


class ToolExecutionError(NewsletterAgentError):
    """A tool failed while running."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"{tool_name}: {message}")
        self.tool_name = tool_name


class UnknownToolError(ToolExecutionError):
    """The model asked for a tool that is not registered."""

    def __init__(self, tool_name: str):
        super().__init__(tool_name, "unknown tool")


class ContentServiceError(NewsletterAgentError):
    """The remote content service rejected a request."""


class NoHtmlProducedError(NewsletterAgentError):
    """Neither the planner nor any fallback tier produced HTML."""

    def __init__(self, steps: Optional[List[PlanStep]] = None, cause: Optional[str] = None):
        message = "No HTML produced by the agent and fallback failed."
        super().__init__(message)
        self.steps = steps or []
        self.cause = cause


class DeliveryError(NewsletterAgentError):
    """The mail transport failed to deliver a message."""


class EmptyFallbackError(NewsletterAgentError):
    """The render fallback found nothing to render and empty shells are refused."""
