"""Language model capability used by the planner and the writer tools."""

import json
import logging
import re
import unicodedata
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Protocol

from pydantic import TypeAdapter, ValidationError

from newsletter_agent.core.exceptions import ModelResponseError
from newsletter_agent.models.plan import TextGeneration, ToolCall, ToolResult

logger = logging.getLogger(__name__)


class ToolSet(Protocol):
    """What a model needs from a tool registry to drive tool calls."""

    def declarations(self) -> List[Dict[str, Any]]:
        ...

    async def invoke(self, call: ToolCall) -> ToolResult:
        ...


class LanguageModel(ABC):
    """Black-box text and structured-output generation."""

    @abstractmethod
    async def generate_text(
        self,
        system: str,
        prompt: str,
        tools: Optional[ToolSet] = None,
        temperature: float = 0.3,
        max_steps: int = 1,
    ) -> TextGeneration:
        """Generate text, letting the model call ``tools`` for up to ``max_steps``.

        Returns the final text together with every step taken.
        """

    @abstractmethod
    async def generate_structured(
        self,
        schema: Any,
        prompt: str,
        input: Any = None,
        temperature: float = 0.2,
    ) -> Any:
        """Generate a JSON value validated against ``schema`` (a type or model)."""


def extract_json(text: str) -> str:
    """Extract the most probable JSON document from model output.

    Prefers a fenced ```json block, then the outermost array or object.
    """
    current = unicodedata.normalize("NFKC", text or "").strip()
    current = current.replace("\ufeff", "").replace("\u200b", "")

    match = re.search(r"```(?:json)?\s*([\[{].*?[\]}])\s*```", current, re.DOTALL)
    if match:
        return match.group(1).strip()

    starts = [i for i in (current.find("["), current.find("{")) if i != -1]
    if not starts:
        return current
    start = min(starts)
    closing = "]" if current[start] == "[" else "}"
    end = current.rfind(closing)
    if end > start:
        return current[start : end + 1]
    return current


def parse_structured(schema: Any, text: str) -> Any:
    """Parse model output into ``schema``, raising ModelResponseError."""
    raw = extract_json(text)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ModelResponseError(f"Model did not return JSON: {e}") from e

    adapter = TypeAdapter(schema)
    try:
        return adapter.validate_python(data)
    except ValidationError as first_error:
        # Models often wrap arrays in an object, e.g. {"outline": [...]}.
        if isinstance(data, dict):
            lists = [v for v in data.values() if isinstance(v, list)]
            if len(lists) == 1:
                try:
                    return adapter.validate_python(lists[0])
                except ValidationError:
                    pass
        raise ModelResponseError(
            f"Model output failed validation: {first_error}"
        ) from first_error
