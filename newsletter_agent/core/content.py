"""Content collaborators: source fetching, summarizing and email rendering."""

import logging
from abc import ABC, abstractmethod
from html import escape
from typing import Any, Dict, List, Optional

from newsletter_agent.models.content import (
    EmailRenderInput,
    FetchSourcesOutput,
    FooterSettings,
    HtmlOutput,
    SourceItem,
    Summary,
    SummarizeOutput,
)

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY_CHARS = 400
FILL_TO = 5

MOCK_POSTS: List[SourceItem] = [
    SourceItem(
        id=1,
        title="Scaling Your API with Kong",
        url="https://example.com/kong-scaling",
        published="2025-10-13",
        content="Kong can sit in front of Express to handle rate limits, auth, and routing. This guide shows how to run Kong as an API gateway for better scalability and security.",
    ),
    SourceItem(
        id=2,
        title="Next.js + Flask: A Practical Bridge",
        url="https://example.com/next-flask",
        published="2025-10-15",
        content="Use Next.js App Router for UI, Flask for data and ML tools. Keep tools idempotent and keep frontend and backend concerns apart.",
    ),
    SourceItem(
        id=3,
        title="Photo Organizer UX Patterns",
        url="https://example.com/photo-ux",
        published="2025-10-16",
        content="Three patterns make photo management feel magical: batching, previews, undo. Learn how to build intuitive interfaces for media management.",
    ),
    SourceItem(
        id=4,
        title="AI-Powered Code Review Tools",
        url="https://example.com/ai-code-review",
        published="2025-10-17",
        content="New AI tools are changing code review. From automated bug detection to style suggestions, they are becoming essential dev tools for teams.",
    ),
    SourceItem(
        id=5,
        title="Microservices Architecture Best Practices",
        url="https://example.com/microservices-best-practices",
        published="2025-10-18",
        content="Building scalable microservices requires careful planning. Learn about service boundaries, data consistency, and communication patterns that work in production.",
    ),
    SourceItem(
        id=6,
        title="React Server Components Deep Dive",
        url="https://example.com/react-server-components",
        published="2025-10-19",
        content="React Server Components change how React applications are built. Understand the benefits, limitations, and practical implementation strategies.",
    ),
    SourceItem(
        id=7,
        title="Git and GitHub Workshop",
        url="https://example.com/git-github-workshop",
        published="2025-10-15",
        content="Learn the fundamentals of version control with Git and GitHub. The workshop covers branching, merging, pull requests, and collaborative workflows.",
    ),
    SourceItem(
        id=8,
        title="Understanding AI Agents in Modern Development",
        url="https://example.com/ai-agents-guide",
        published="2025-10-17",
        content="AI agents are becoming sophisticated tools for automation and decision-making. Learn about different kinds of agents and their use in software development.",
    ),
]


class ContentProvider(ABC):
    """Interface of the content collaborator used by tools and fallbacks."""

    @abstractmethod
    async def fetch_sources(
        self,
        topic: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> FetchSourcesOutput:
        """Fetch recent articles for a topic within a date range."""

    @abstractmethod
    async def summarize(
        self, items: List[Dict[str, Any]], max_chars: Optional[int] = None
    ) -> SummarizeOutput:
        """Summarize items into short blurbs."""

    @abstractmethod
    async def render_email(self, data: EmailRenderInput) -> HtmlOutput:
        """Render a styled HTML email from items and CTAs."""


class MockContentProvider(ContentProvider):
    """Built-in corpus and deterministic renderer for local use and tests."""

    def __init__(
        self,
        posts: Optional[List[SourceItem]] = None,
        footer: Optional[FooterSettings] = None,
    ):
        self.posts = list(MOCK_POSTS if posts is None else posts)
        self.footer = footer or FooterSettings()

    async def fetch_sources(
        self,
        topic: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> FetchSourcesOutput:
        keywords = (topic or "").strip().lower().split()

        def matches(post: SourceItem) -> bool:
            text = f"{post.title} {post.content}".lower()
            return not keywords or any(k in text for k in keywords)

        in_range = [
            p
            for p in self.posts
            if (not start_date or p.published >= start_date)
            and (not end_date or p.published <= end_date)
        ]
        matched = [p for p in in_range if matches(p)]
        rest = sorted(
            (p for p in in_range if p not in matched),
            key=lambda p: p.published,
            reverse=True,
        )
        items = (matched + rest)[:FILL_TO]
        logger.debug(f"fetch_sources({topic!r}) returning {len(items)} items")
        return FetchSourcesOutput(items=items)

    async def summarize(
        self, items: List[Dict[str, Any]], max_chars: Optional[int] = None
    ) -> SummarizeOutput:
        limit = max_chars or DEFAULT_SUMMARY_CHARS
        summaries = []
        for item in items or []:
            title = str(item.get("title", ""))
            sentences = [s.strip() for s in str(item.get("content", "")).split(".")]
            lead = ". ".join([s for s in sentences if s][:2])
            text = f"{title}: {lead}."
            if len(text) > limit:
                text = text[: limit - 1].rstrip() + "…"
            summaries.append(
                Summary(
                    id=item.get("id"),
                    title=title,
                    url=str(item.get("url", "")),
                    summary=text,
                    published=str(item.get("published", "")),
                )
            )
        return SummarizeOutput(summaries=summaries)

    async def render_email(self, data: EmailRenderInput) -> HtmlOutput:
        return HtmlOutput(html=render_email_html(data, self.footer))


def render_footer_html(settings: FooterSettings) -> str:
    if settings.custom_html:
        return settings.custom_html
    lines = [f"<strong>{escape(settings.org_name)}</strong>"]
    lines += [escape(a) for a in (settings.address_line1, settings.address_line2) if a]
    links = [
        f'<a href="{escape(url)}" target="_blank">{label}</a>'
        for label, url in (
            ("Website", settings.website_url),
            ("Twitter", settings.twitter_url),
            ("LinkedIn", settings.linkedin_url),
        )
        if url
    ]
    links_html = f'<div style="margin-top:6px;">{" · ".join(links)}</div>' if links else ""
    unsubscribe = (
        f'<div style="margin-top:6px;font-size:12px;">You can '
        f'<a href="{escape(settings.unsubscribe_url)}" target="_blank">unsubscribe here</a>.</div>'
        if settings.unsubscribe_url
        else ""
    )
    return (
        f'\n  <hr/>\n  <footer style="margin-top:16px;{settings.style}">\n'
        f'    <div>{"<br/>".join(lines)}</div>\n    {links_html}\n    {unsubscribe}\n'
        f"  </footer>"
    )


def _enhanced_intro(data: EmailRenderInput) -> str:
    intro = data.intro
    if data.newsletter_type:
        intro += f" This {data.newsletter_type} newsletter"
    if data.location:
        intro += f" focuses on {data.location}"
    if data.tone:
        intro += f" with a {data.tone} tone"
    if data.key_details:
        intro += f". Key highlights: {data.key_details}"
    if data.content:
        intro += f". {data.content}"
    return intro


def _render_item(item: Dict[str, Any]) -> str:
    title = escape(str(item.get("title", "")))
    if item.get("bodyHtml"):
        takeaways = item.get("key_takeaways") or []
        bullets = (
            '<ul style="margin:8px 0 0 18px;">'
            + "".join(f"<li>{escape(str(k))}</li>" for k in takeaways)
            + "</ul>"
            if isinstance(takeaways, list) and takeaways
            else ""
        )
        return (
            f'<section style="margin:20px 0;">\n'
            f'  <h2 style="margin:0 0 8px;">{title}</h2>\n'
            f"  {item['bodyHtml']}\n  {bullets}\n</section>"
        )

    url = item.get("url")
    published = item.get("published")
    read_more = f'<a href="{escape(str(url))}" style="font-size:14px;">Read more →</a>' if url else ""
    date = (
        f'<div style="font-size:12px;color:#777;">Published: {escape(str(published))}</div>'
        if published
        else ""
    )
    return (
        f'<div style="margin:16px 0;">\n'
        f'  <h3 style="margin:0 0 4px;">{title}</h3>\n'
        f'  <p style="margin:0 0 4px;color:#333;">{escape(str(item.get("summary") or ""))}</p>\n'
        f"  {read_more}\n  {date}\n</div>"
    )


def render_email_html(data: EmailRenderInput, footer: FooterSettings) -> str:
    """Render the static newsletter document."""
    features = ""
    if data.features:
        features = (
            '\n  <div style="margin:16px 0;padding:12px;background:#f5f5f5;border-radius:6px;">'
            '\n    <h3 style="margin:0 0 8px;">Content Features</h3>'
            '\n    <ul style="margin:0;padding-left:20px;">'
            + "".join(f"<li>{escape(f)}</li>" for f in data.features)
            + "</ul>\n  </div>"
        )
    links = ""
    if data.links:
        links = (
            '\n  <div style="margin:16px 0;padding:12px;background:#e8f4fd;border-radius:6px;">'
            '\n    <h3 style="margin:0 0 8px;">Related Links</h3>'
            '\n    <ul style="margin:0;padding-left:20px;">'
            + "".join(
                f'<li><a href="{escape(l)}" target="_blank">{escape(l)}</a></li>'
                for l in data.links
            )
            + "</ul>\n  </div>"
        )
    ctas = ""
    if data.ctas:
        ctas = (
            '\n  <hr/>\n  <section style="margin:20px 0;">\n    <h3>Keep going</h3>\n'
            + "".join(
                f"    <p><strong>{escape(c.title)}:</strong> {escape(c.text)} "
                f'<a href="{escape(c.url)}">→</a></p>\n'
                for c in data.ctas
            )
            + "  </section>"
        )
    title = escape(data.title)
    body = "\n".join(_render_item(item) for item in data.items)
    return (
        "<!doctype html>\n"
        f'<html><head><meta charset="utf-8"><title>{title}</title></head>\n'
        '<body style="font-family:system-ui,-apple-system,Segoe UI,Roboto,sans-serif;padding:24px;">\n'
        f'  <h1 style="margin:0 0 8px;">{title}</h1>\n'
        f'  <p style="color:#555;">{escape(_enhanced_intro(data))}</p>'
        f"{features}{links}\n  <hr/>\n{body}{ctas}"
        f"{render_footer_html(footer)}\n</body></html>"
    )
