"""FastAPI interface for drafting, sending and inspecting newsletters."""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.requests import Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
import uvicorn

from newsletter_agent.clients.content_service import get_content_provider
from newsletter_agent.clients.llm import LanguageModel
from newsletter_agent.clients.openrouter import get_model
from newsletter_agent.core.agent import NewsletterAgent, build_response_payload
from newsletter_agent.core.content import ContentProvider
from newsletter_agent.core.delivery import MailTransport, get_transport
from newsletter_agent.core.exceptions import ModelUnavailableError, NoHtmlProducedError
from newsletter_agent.core.log_cache import LogCache
from newsletter_agent.core.request_logger import RequestLogger
from newsletter_agent.models.request import NewsletterRequest, SendRequest
from newsletter_agent.models.settings import Settings

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

ModelFactory = Callable[[str, Settings], LanguageModel]


def validation_issues(error: ValidationError) -> List[Dict[str, str]]:
    """Flatten a pydantic error into ``{field, message}`` pairs."""
    return [
        {
            "field": ".".join(str(part) for part in issue["loc"]) or "body",
            "message": issue["msg"],
        }
        for issue in error.errors()
    ]


def _error_response(
    status_code: int, request_logger: RequestLogger, **body: Any
) -> JSONResponse:
    body.update(reqId=request_logger.id, logs=request_logger.dump())
    return JSONResponse(body, status_code=status_code)


async def _sweep_logs(cache: LogCache, interval: float) -> None:
    """Drop expired request logs until cancelled."""
    while True:
        await asyncio.sleep(interval)
        removed = cache.evict_expired()
        if removed:
            logger.debug(f"Swept {removed} expired request logs")


def create_app(
    settings: Optional[Settings] = None,
    log_cache: Optional[LogCache] = None,
    model_factory: Optional[ModelFactory] = None,
    content_provider: Optional[ContentProvider] = None,
    transport: Optional[MailTransport] = None,
) -> FastAPI:
    """Build the API with its process-wide collaborators."""
    settings = settings or Settings()
    cache = log_cache or LogCache(
        max_entries=settings.log_cache_max_entries,
        ttl_seconds=settings.log_ttl_seconds,
    )
    make_model = model_factory or get_model
    content = content_provider or get_content_provider(settings)
    mailer = transport or get_transport(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper = asyncio.create_task(_sweep_logs(cache, settings.log_sweep_interval))
        logger.info(
            f"Newsletter agent started (transport={mailer.name}, "
            f"log cache={settings.log_cache_max_entries} entries)"
        )
        try:
            yield
        finally:
            sweeper.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper

    app = FastAPI(
        title="Newsletter Agent",
        description="Plans, drafts and delivers HTML newsletters with a tool-calling model",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.log_cache = cache

    def new_logger() -> RequestLogger:
        return RequestLogger.create(cache, max_chars=settings.log_truncate_chars)

    @app.post("/agent")
    async def draft_newsletter(request: Request):
        """Draft a newsletter, delivering it unless ``dryRun`` is set."""
        log = new_logger()
        log.step("request:start")

        try:
            body = await request.json()
        except ValueError as e:
            log.error("request:bad-json", {"err": str(e)})
            return _error_response(400, log, error="Invalid JSON")
        log.debug("request:body", {"json": body})

        try:
            data = NewsletterRequest.model_validate(body)
        except ValidationError as e:
            issues = validation_issues(e)
            log.warn("request:validation-failed", {"issues": issues})
            return _error_response(400, log, error="Invalid body", issues=issues)
        log.step("request:validated", data=data.model_dump(mode="json", by_alias=True))

        try:
            model = make_model(data.provider, settings)
        except ModelUnavailableError as e:
            logger.error(f"Model init failed: {e}")
            log.error("model:init-failed", {"err": str(e)})
            return _error_response(500, log, error="Failed to initialize AI model")

        agent = NewsletterAgent(model, content, mailer, settings, log)
        try:
            result = await agent.run(data)
        except NoHtmlProducedError as e:
            return _error_response(
                502,
                log,
                error=str(e),
                steps=[step.model_dump(mode="json") for step in e.steps],
            )

        return build_response_payload(log, result)

    @app.post("/agent/send")
    async def send_newsletter(request: Request):
        """Deliver already-rendered HTML."""
        log = new_logger()
        log.step("send:request:start")
        try:
            try:
                body = await request.json()
            except ValueError as e:
                log.warn("send:bad-json", {"err": str(e)})
                return _error_response(400, log, error="Invalid JSON")

            try:
                data = SendRequest.model_validate(body)
            except ValidationError as e:
                issues = validation_issues(e)
                log.warn("send:validation-failed", {"issues": issues})
                return _error_response(400, log, error="Invalid body", issues=issues)

            log.step("send:begin", to=data.to)
            try:
                receipt = await mailer.send(to=data.to, subject=data.subject, html=data.html)
            except Exception as e:
                logger.error(f"Direct send failed: {e}")
                log.error("send:failed", {"err": str(e)})
                return _error_response(500, log, error=str(e))

            provider = receipt.get("provider", mailer.name)
            log.info(f"send:ok:{provider}", {"to": data.to})
            return {"ok": True, "provider": provider, "reqId": log.id}
        finally:
            log.done()

    @app.get("/agent/logs/{req_id}")
    async def get_request_logs(req_id: str):
        """Cached structured log of a request."""
        lines = cache.get(req_id)
        if lines is None:
            raise HTTPException(status_code=404, detail="Logs not found or expired")
        return {
            "reqId": req_id,
            "logs": [line.to_wire() for line in lines],
            "total": len(lines),
        }

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        has_model_key = bool(settings.openrouter_api_key)
        return {
            "status": "healthy" if has_model_key else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": VERSION,
            "api_keys": {"openrouter": has_model_key},
            "mail_transport": mailer.name,
            "content_source": "remote" if settings.content_service_url else "mock",
            "log_cache": cache.stats(),
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
