"""Structured request log models."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class Level(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class ToolCallRecord(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    input: Any = None
    start_time: float = Field(..., alias="startTime")


class ToolResultRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    output: Any = None
    duration: int = 0
    success: bool = True


class StepMarker(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    phase: str = "execution"


class LogLine(BaseModel):
    """A single immutable request log entry."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, use_enum_values=True)

    ts: str = Field(..., description="ISO timestamp")
    level: Level
    req_id: str = Field(..., alias="reqId")
    msg: str
    data: Any = None
    tool_call: Optional[ToolCallRecord] = Field(None, alias="toolCall")
    tool_result: Optional[ToolResultRecord] = Field(None, alias="toolResult")
    duration: Optional[int] = None
    step: Optional[StepMarker] = None

    def to_wire(self) -> Dict[str, Any]:
        """Camel-cased dict for API responses."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
