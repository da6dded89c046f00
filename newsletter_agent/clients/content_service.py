"""HTTP client for a remote content tools service."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from newsletter_agent.core.content import ContentProvider, MockContentProvider
from newsletter_agent.core.exceptions import ContentServiceError
from newsletter_agent.models.content import (
    EmailRenderInput,
    FetchSourcesOutput,
    HtmlOutput,
    SummarizeOutput,
)
from newsletter_agent.models.settings import Settings

logger = logging.getLogger(__name__)


class ContentServiceClient(ContentProvider):
    """Content provider backed by a service exposing the same tool shapes.

    The service answers ``POST /fetch_sources``, ``/summarize`` and
    ``/generate_email`` with the JSON bodies of the matching tool outputs.
    """

    def __init__(self, base_url: str, timeout: float = 15.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def fetch_sources(
        self,
        topic: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> FetchSourcesOutput:
        body = await self._post(
            "fetch_sources",
            {"topic": topic, "start_date": start_date, "end_date": end_date},
        )
        return FetchSourcesOutput.model_validate(body)

    async def summarize(
        self, items: List[Dict[str, Any]], max_chars: Optional[int] = None
    ) -> SummarizeOutput:
        body = await self._post("summarize", {"items": items, "max_chars": max_chars})
        return SummarizeOutput.model_validate(body)

    async def render_email(self, data: EmailRenderInput) -> HtmlOutput:
        body = await self._post("generate_email", data.model_dump(mode="json"))
        return HtmlOutput.model_validate(body)

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/{path}"
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url,
                    json={k: v for k, v in payload.items() if v is not None},
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        logger.error(
                            f"Content service error: {response.status} - {error_text[:300]}"
                        )
                        raise ContentServiceError(f"{path} failed ({response.status})")
                    return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Network error calling content service {path}: {e}")
            raise ContentServiceError(f"{path} failed: {e}") from e


def get_content_provider(settings: Settings) -> ContentProvider:
    """Remote service when configured, built-in mock corpus otherwise."""
    if settings.content_service_url:
        return ContentServiceClient(
            settings.content_service_url, timeout=settings.content_service_timeout
        )
    return MockContentProvider()
