"""Per-request structured logger.

Each request gets a :class:`RequestLogger` bound to a request id. Every write is
stored (redacted) in the shared :class:`LogCache` and mirrored to the standard
``logging`` module as a coloured, human-readable console line.
"""

import logging
import time
import uuid
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from newsletter_agent.core.log_cache import LogCache
from newsletter_agent.core.redaction import (
    DEFAULT_MAX_CHARS,
    redact_value,
    to_truncated_string,
)
from newsletter_agent.models.log import (
    Level,
    LogLine,
    StepMarker,
    ToolCallRecord,
    ToolResultRecord,
)

console = logging.getLogger("newsletter_agent.requests")
logger = logging.getLogger(__name__)

RESET = "\x1b[0m"
DIM = "\x1b[2m"
RED = "\x1b[31m"
GREEN = "\x1b[32m"
YELLOW = "\x1b[33m"
MAGENTA = "\x1b[35m"
WHITE = "\x1b[37m"
GRAY = "\x1b[90m"

LEVEL_COLORS = {
    Level.DEBUG.value: "\x1b[34m",
    Level.INFO.value: GREEN,
    Level.WARN.value: YELLOW,
    Level.ERROR.value: RED,
}

LEVEL_TO_LOGGING = {
    Level.DEBUG.value: logging.DEBUG,
    Level.INFO.value: logging.INFO,
    Level.WARN.value: logging.WARNING,
    Level.ERROR.value: logging.ERROR,
}


def _now_ms() -> float:
    return time.monotonic() * 1000


class RequestLogger:
    """Structured log sink for a single request."""

    def __init__(
        self,
        cache: LogCache,
        request_id: Optional[str] = None,
        max_chars: int = DEFAULT_MAX_CHARS,
    ):
        self.id = request_id or str(uuid.uuid4())
        self.cache = cache
        self.max_chars = max_chars
        self._t0 = _now_ms()
        self._entry = cache.insert(self.id)
        self._active_calls: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        self._call_seq = 0

    @classmethod
    def create(
        cls,
        cache: LogCache,
        request_id: Optional[str] = None,
        max_chars: int = DEFAULT_MAX_CHARS,
    ) -> "RequestLogger":
        """Bind a logger to ``request_id`` (appending to its log) or a new id."""
        return cls(cache, request_id, max_chars)

    def elapsed_ms(self) -> int:
        return int(_now_ms() - self._t0)

    # Leveled writes

    def debug(self, msg: str, data: Any = None) -> None:
        self._push(Level.DEBUG, msg, data)

    def info(self, msg: str, data: Any = None) -> None:
        self._push(Level.INFO, msg, data)

    def warn(self, msg: str, data: Any = None) -> None:
        self._push(Level.WARN, msg, data)

    def error(self, msg: str, data: Any = None) -> None:
        self._push(Level.ERROR, msg, data)

    def step(self, name: str, **extra: Any) -> None:
        duration = self.elapsed_ms()
        self._push(
            Level.INFO,
            f"step:{name}",
            {"ms": duration, **extra},
            step=StepMarker(name=name, phase="execution"),
            duration=duration,
        )

    # Tool tracking

    def tool_call(self, name: str, input: Any) -> str:
        """Record a tool call and return its call id."""
        self._call_seq += 1
        call_id = f"{self.id}-{name}-{self._call_seq}"
        start = _now_ms()
        self._active_calls[call_id] = {"name": name, "start": start}
        self._push(
            Level.DEBUG,
            f"tool:call:{name}",
            {"input": input},
            tool_call=ToolCallRecord(
                name=name, input=redact_value(input), start_time=start
            ),
        )
        return call_id

    def tool_result(
        self,
        name: str,
        output: Any,
        call_id: Optional[str] = None,
        success: bool = True,
    ) -> None:
        duration = self._finish_call(name, call_id)
        self._push(
            Level.DEBUG,
            f"tool:result:{name}",
            {"output": output},
            tool_result=ToolResultRecord(
                name=name, output=redact_value(output), duration=duration, success=success
            ),
        )

    def tool_error(self, name: str, error: Any, call_id: Optional[str] = None) -> None:
        duration = self._finish_call(name, call_id)
        message = str(error)
        self._push(
            Level.ERROR,
            f"tool:error:{name}",
            {"error": message},
            tool_result=ToolResultRecord(
                name=name,
                output=redact_value({"error": message}),
                duration=duration,
                success=False,
            ),
        )

    def model_call(self, what: str, payload: Optional[Dict[str, Any]] = None) -> None:
        self._push(
            Level.DEBUG,
            f"model:{what}",
            {"payload": payload} if payload else None,
            duration=self.elapsed_ms(),
        )

    def done(self, **extra: Any) -> None:
        duration = self.elapsed_ms()
        self._push(Level.INFO, "done", {"ms": duration, **extra}, duration=duration)

    # Dumps

    def dump(self) -> List[Dict[str, Any]]:
        """Structured entries in wire form."""
        return [line.to_wire() for line in self._entry.lines]

    def dump_plain(self) -> List[str]:
        """One human-readable line per entry."""
        out = []
        for line in self._entry.lines:
            text = f"{line.ts} {line.level.upper()} {line.req_id} {line.msg}"
            if line.data is not None:
                text += f" {to_truncated_string(line.data, self.max_chars)}"
            if line.tool_call:
                text += f" [TOOL_CALL: {line.tool_call.name}]"
            if line.tool_result:
                text += (
                    f" [TOOL_RESULT: {line.tool_result.name}"
                    f" ({line.tool_result.duration}ms)]"
                )
            out.append(text)
        return out

    def stats(self) -> Dict[str, Any]:
        """Summary counts used in API responses."""
        by_level: Dict[str, int] = {}
        tool_calls = tool_results = 0
        for line in self._entry.lines:
            by_level[line.level] = by_level.get(line.level, 0) + 1
            tool_calls += 1 if line.tool_call else 0
            tool_results += 1 if line.tool_result else 0
        return {
            "total": len(self._entry.lines),
            "byLevel": by_level,
            "toolCalls": tool_calls,
            "toolResults": tool_results,
        }

    # Internals

    def _finish_call(self, name: str, call_id: Optional[str]) -> int:
        call = self._active_calls.pop(call_id, None) if call_id else None
        if call is None:
            for key, candidate in self._active_calls.items():
                if candidate["name"] == name:
                    call = self._active_calls.pop(key)
                    break
        if call is None:
            return 0
        return int(_now_ms() - call["start"])

    def _push(
        self,
        level: Level,
        msg: str,
        data: Any = None,
        **extra: Any,
    ) -> None:
        try:
            line = LogLine(
                ts=datetime.now(timezone.utc).isoformat(),
                level=level,
                req_id=self.id,
                msg=msg,
                data=None if data is None else redact_value(data),
                **extra,
            )
            self.cache.append(self.id, self._entry, line)
            console.log(LEVEL_TO_LOGGING[line.level], self._format(line))
        except Exception as e:
            # Logging must never break the request.
            logger.debug(f"Failed to record log line {msg!r}: {e}")

    def _format(self, line: LogLine) -> str:
        if line.tool_call:
            return (
                f"{MAGENTA}🔧 {line.tool_call.name}{RESET}\n"
                f"{DIM}Input: {to_truncated_string(line.tool_call.input, self.max_chars)}{RESET}"
            )
        if line.tool_result:
            result = line.tool_result
            status = f"{GREEN}✓{RESET}" if result.success else f"{RED}✗{RESET}"
            return (
                f"{status} {MAGENTA}{result.name}{RESET} ({result.duration}ms)\n"
                f"{DIM}Output: {to_truncated_string(result.output, self.max_chars)}{RESET}"
            )

        stamp = datetime.now().strftime("%H:%M:%S")
        level_text = f"{LEVEL_COLORS[line.level]}{line.level.upper():<5}{RESET}"
        msg_color = {"error": RED, "warn": YELLOW}.get(line.level, WHITE)
        duration = f" {GRAY}({line.duration}ms){RESET}" if line.duration else ""
        data = (
            f"\n{DIM}Data: {to_truncated_string(line.data, self.max_chars)}{RESET}"
            if line.data is not None
            else ""
        )
        return (
            f"{GRAY}[{stamp}]{RESET} {level_text} {GRAY}{self.id[:8]}{RESET} "
            f"{msg_color}{line.msg}{RESET}{duration}{data}"
        )
