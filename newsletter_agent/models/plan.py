"""Planner step models."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class FinishReason(str, Enum):
    """Why the model stopped a step."""

    TOOL_CALLS = "tool-calls"
    STOP = "stop"
    LENGTH = "length"
    ERROR = "error"
    OTHER = "other"

    @classmethod
    def from_openai(cls, value: Optional[str]) -> "FinishReason":
        return {
            "tool_calls": cls.TOOL_CALLS,
            "function_call": cls.TOOL_CALLS,
            "stop": cls.STOP,
            "length": cls.LENGTH,
            "error": cls.ERROR,
        }.get(value or "", cls.OTHER)


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    call_id: str
    tool_name: str
    args: Dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """The outcome of a tool invocation, as reported back to the model."""

    call_id: str
    tool_name: str
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


class PlanStep(BaseModel):
    """One iteration of the planner loop."""

    text: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    tool_results: List[ToolResult] = Field(default_factory=list)
    finish_reason: FinishReason = FinishReason.OTHER


class TextGeneration(BaseModel):
    """Final text and step history of a model run."""

    text: str = ""
    steps: List[PlanStep] = Field(default_factory=list)
