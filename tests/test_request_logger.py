"""Tests for the per-request structured logger."""

import logging

from newsletter_agent.core.log_cache import LogCache
from newsletter_agent.core.redaction import REDACTED, TRUNCATION_MARKER
from newsletter_agent.core.request_logger import RequestLogger


def test_lines_are_cached_under_request_id(log_cache):
    log = RequestLogger.create(log_cache)
    log.info("hello", {"n": 1})

    lines = log_cache.get(log.id)
    assert [line.msg for line in lines] == ["hello"]
    assert lines[0].req_id == log.id


def test_binding_existing_id_appends():
    cache = LogCache()
    first = RequestLogger.create(cache, request_id="req-1")
    first.info("one")

    second = RequestLogger.create(cache, request_id="req-1")
    second.info("two")

    assert [line.msg for line in cache.get("req-1")] == ["one", "two"]


def test_api_key_values_redacted_at_any_depth(request_logger):
    request_logger.debug(
        "payload",
        {
            "outer": {"inner": ["ok", {"token": "sk-abc123"}]},
            "settings": {"OPENROUTER_API_KEY": "plain-looking"},
        },
    )

    data = request_logger.dump()[0]["data"]
    assert data["outer"]["inner"][0] == "ok"
    assert data["outer"]["inner"][1]["token"] == REDACTED
    assert data["settings"]["OPENROUTER_API_KEY"] == REDACTED


def test_tool_records_are_redacted(request_logger):
    call_id = request_logger.tool_call("fetch_sources", {"api_key": "secret"})
    request_logger.tool_result("fetch_sources", {"echo": "sk-live9"}, call_id)

    call_line, result_line = request_logger.dump()
    assert call_line["toolCall"]["input"]["api_key"] == REDACTED
    assert result_line["toolResult"]["output"]["echo"] == REDACTED


def test_tool_result_matches_call_and_counts(request_logger):
    call_id = request_logger.tool_call("summarize", {"items": []})
    request_logger.tool_result("summarize", {"summaries": []}, call_id)
    other = request_logger.tool_call("summarize", {"items": []})
    request_logger.tool_error("summarize", ValueError("boom"), other)

    call, ok, _, failed = request_logger.dump()
    assert call["toolCall"]["name"] == "summarize"
    assert "startTime" in call["toolCall"]
    assert ok["toolResult"]["success"] is True
    assert ok["toolResult"]["duration"] >= 0
    assert failed["level"] == "error"
    assert failed["toolResult"]["success"] is False
    assert failed["toolResult"]["output"] == {"error": "boom"}

    stats = request_logger.stats()
    assert stats["total"] == 4
    assert stats["toolCalls"] == 2
    assert stats["toolResults"] == 2
    assert stats["byLevel"] == {"debug": 3, "error": 1}


def test_result_without_call_id_uses_oldest_same_name(request_logger):
    first = request_logger.tool_call("build_outline", {})
    request_logger.tool_call("build_outline", {})

    request_logger.tool_result("build_outline", {"outline": []})

    assert first not in request_logger._active_calls
    assert len(request_logger._active_calls) == 1


def test_step_records_marker_and_elapsed(request_logger):
    request_logger.step("planner:start", extra=1)

    line = request_logger.dump()[0]
    assert line["msg"] == "step:planner:start"
    assert line["step"] == {"name": "planner:start", "phase": "execution"}
    assert line["data"]["extra"] == 1
    assert "ms" in line["data"]


def test_wire_form_omits_empty_fields(request_logger):
    request_logger.warn("bare")

    line = request_logger.dump()[0]
    assert set(line) == {"ts", "level", "reqId", "msg"}
    assert line["level"] == "warn"


def test_plain_dump_truncates_payloads():
    cache = LogCache()
    log = RequestLogger.create(cache, max_chars=100)
    log.info("big", {"blob": "x" * 500})
    call_id = log.tool_call("rewrite_tone", {"html": "<p/>"})
    log.tool_result("rewrite_tone", {"html_len": 4}, call_id)

    plain = log.dump_plain()
    assert TRUNCATION_MARKER in plain[0]
    assert len(plain[0]) < 300
    assert plain[1].endswith("[TOOL_CALL: rewrite_tone]")
    assert "[TOOL_RESULT: rewrite_tone (" in plain[2]
    # Stored data is never truncated.
    assert log.dump()[0]["data"]["blob"] == "x" * 500


def test_unserializable_payload_falls_back_to_str(request_logger):
    class Opaque:
        def __str__(self):
            return "opaque-thing"

    request_logger.info("odd", {"value": Opaque()})

    assert request_logger.dump()[0]["data"]["value"] == "opaque-thing"


def test_lines_mirrored_to_logging(request_logger, caplog):
    with caplog.at_level(logging.DEBUG, logger="newsletter_agent.requests"):
        request_logger.error("model:init-failed", {"api_key": "nope"})

    assert "model:init-failed" in caplog.text
    assert "nope" not in caplog.text


def test_done_records_duration(request_logger):
    request_logger.done(html_len=10)

    line = request_logger.dump()[0]
    assert line["msg"] == "done"
    assert line["data"]["html_len"] == 10
