"""Command line interface for the newsletter agent."""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Tuple

import click

# Runtime modules are imported inside the commands so that loading the CLI
# (for --help or command registration) stays cheap.

logger = logging.getLogger(__name__)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """Newsletter agent CLI.

    Plans a newsletter with a tool-calling model, falls back to deterministic
    rendering when the model does not deliver, and optionally emails the result.
    """
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=log_level, force=True)
    logger.debug("Debug mode enabled")


@cli.command()
@click.option("--topic", required=True, help="Newsletter topic")
@click.option("--start-date", default=None, help="Start of the date range (YYYY-MM-DD)")
@click.option("--end-date", default=None, help="End of the date range (YYYY-MM-DD)")
@click.option("--title", default=None, help="Newsletter title")
@click.option("--section-count", type=int, default=None, help="Number of sections (2-8)")
@click.option("--tone", multiple=True, help="Tone descriptor; repeat for several")
@click.option("--send-to", default=None, help="Email the draft to this address")
@click.option(
    "--output",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Write the HTML here instead of stdout",
)
@click.pass_context
def draft(
    ctx: click.Context,
    topic: str,
    start_date: Optional[str],
    end_date: Optional[str],
    title: Optional[str],
    section_count: Optional[int],
    tone: Tuple[str, ...],
    send_to: Optional[str],
    output: Optional[str],
) -> None:
    """Draft a newsletter and print or save its HTML."""

    async def _draft() -> int:
        from pydantic import ValidationError

        from newsletter_agent.clients import openrouter
        from newsletter_agent.clients.content_service import get_content_provider
        from newsletter_agent.core.agent import NewsletterAgent
        from newsletter_agent.core.delivery import get_transport
        from newsletter_agent.core.exceptions import (
            DeliveryError,
            ModelUnavailableError,
            NoHtmlProducedError,
        )
        from newsletter_agent.core.log_cache import LogCache
        from newsletter_agent.core.request_logger import RequestLogger
        from newsletter_agent.models.request import NewsletterRequest
        from newsletter_agent.models.settings import Settings

        settings = Settings(debug=ctx.obj.get("debug", False))

        body = {
            "topic": topic,
            "start_date": start_date,
            "end_date": end_date,
            "title": title,
            "sections": section_count,
            "tone": list(tone) or None,
            "to": send_to,
            "dryRun": send_to is None,
        }
        try:
            request = NewsletterRequest.model_validate(
                {k: v for k, v in body.items() if v is not None}
            )
        except ValidationError as e:
            for issue in e.errors():
                field = ".".join(str(p) for p in issue["loc"]) or "request"
                click.echo(f"❌ {field}: {issue['msg']}", err=True)
            return 2

        try:
            model = openrouter.get_model(request.provider, settings)
            transport = get_transport(settings)
        except (ModelUnavailableError, DeliveryError) as e:
            logger.error(f"❌ {e}")
            return 1

        cache = LogCache(max_entries=1, ttl_seconds=settings.log_ttl_seconds)
        request_log = RequestLogger.create(cache, max_chars=settings.log_truncate_chars)
        agent = NewsletterAgent(
            model, get_content_provider(settings), transport, settings, request_log
        )

        logger.info(f"📝 Drafting newsletter on {request.topic!r}...")
        try:
            result = await agent.run(request)
        except NoHtmlProducedError as e:
            logger.error(f"❌ {e}")
            return 1

        if output:
            Path(output).write_text(result.html, encoding="utf-8")
            logger.info(f"✅ Draft written to {output} (source: {result.source})")
        else:
            click.echo(result.html)

        if result.send_error:
            logger.warning(f"⚠️  Delivery failed: {result.send_error}")
        elif result.send:
            logger.info(f"📧 Sent to {send_to} via {result.send.get('provider')}")
        return 0

    code = asyncio.run(_draft())
    if code:
        ctx.exit(code)


@cli.command()
@click.option("--host", default="127.0.0.1", help="Interface to bind")
@click.option("--port", type=int, default=8000, help="Port to listen on")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Run the HTTP API."""
    import uvicorn

    logger.info(f"🚀 Serving newsletter agent on http://{host}:{port}")
    uvicorn.run(
        "newsletter_agent.web.app:app",
        host=host,
        port=port,
        log_level="debug" if ctx.obj.get("debug") else "info",
    )


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check the model connection and configuration."""
    from newsletter_agent.clients import openrouter
    from newsletter_agent.core.exceptions import ModelUnavailableError
    from newsletter_agent.models.settings import Settings

    settings = Settings()
    logger.info("🔍 Checking system health...")

    try:
        model = openrouter.get_model("gemini", settings)
    except ModelUnavailableError as e:
        click.echo(f"❌ Model: {e}")
        ctx.exit(1)

    connected = asyncio.run(model.test_connection())
    status_icon = "✅" if connected else "❌"
    click.echo(f"🌐 OpenRouter ({model.default_model}): {status_icon}")
    click.echo(f"📧 Transport: {settings.mail_transport}")
    click.echo(f"📡 Content: {settings.content_service_url or 'built-in mock corpus'}")

    if not connected:
        logger.warning("⚠️  Model connection failed; drafts will rely on fallbacks")
        ctx.exit(1)
    click.echo("✅ System healthy")


@cli.command()
def config() -> None:
    """Display current configuration (without sensitive values)."""
    from newsletter_agent.models.settings import Settings

    settings = Settings()

    click.echo("\n📋 Newsletter Agent Configuration\n")
    click.echo(f"Debug Mode: {settings.debug}")
    click.echo(f"Log Level: {settings.log_level}")

    click.echo("\n🔑 API Keys:")
    status = "✅ Configured" if settings.openrouter_api_key else "❌ Missing"
    click.echo(f"  OpenRouter: {status}")

    click.echo("\n🤖 Model:")
    click.echo(f"  Override: {settings.openrouter_model or '(provider default)'}")
    click.echo(f"  Fallbacks: {', '.join(settings.fallback_models) or '(none)'}")
    click.echo(f"  Planner steps: {settings.planner_max_steps}")

    click.echo("\n📡 Content:")
    click.echo(f"  Source: {settings.content_service_url or 'built-in mock corpus'}")
    click.echo(f"  Empty fallback allowed: {settings.allow_empty_fallback}")

    click.echo("\n📧 Delivery:")
    click.echo(f"  Transport: {settings.mail_transport}")
    if settings.mail_transport == "smtp":
        click.echo(f"  SMTP: {settings.smtp_host}:{settings.smtp_port}")


if __name__ == "__main__":
    cli()
