"""Model-backed writing helpers: outlines, sections, CTAs, tone and full drafts."""

import logging
import re
from typing import Annotated, Any, Dict, List, Optional

from pydantic import Field

from newsletter_agent.clients.llm import LanguageModel
from newsletter_agent.models.content import (
    CallToAction,
    CTAOutput,
    HtmlOutput,
    OutlineItem,
    OutlineOutput,
    Section,
    SectionsOutput,
)

logger = logging.getLogger(__name__)

OutlineSchema = Annotated[List[OutlineItem], Field(min_length=2, max_length=8)]
SectionsSchema = Annotated[List[Section], Field(min_length=1)]
CTASchema = Annotated[List[CallToAction], Field(max_length=2)]

WRITER_SYSTEM = (
    "You are a professional newsletter writer. Create a complete, well-structured "
    "HTML newsletter document with proper styling, sections, and engaging content."
)

DOCTYPE_DOCUMENT = re.compile(r"<!doctype html[\s\S]*</html>", re.IGNORECASE)
HTML_DOCUMENT = re.compile(r"<html[\s\S]*</html>", re.IGNORECASE)


def build_writer_prompt(values: Dict[str, Any]) -> str:
    """Build the newsletter-writing prompt from request and tool fields.

    Optional attributes are appended in a fixed order, and only when present.
    """
    tone = values.get("tone")
    if isinstance(tone, list):
        tone = ", ".join(tone)

    prompt = f'Write a newsletter titled "{values.get("title")}" about {values.get("topic")}'
    if values.get("newsletter_type"):
        prompt += f" (Type: {values['newsletter_type']})"
    if tone:
        prompt += f" in a {tone} tone"
    if values.get("sections"):
        prompt += f" with {values['sections']} sections"
    if values.get("intro"):
        prompt += f". Use this introduction: {values['intro']}"
    if values.get("features"):
        prompt += f". Include these content features: {', '.join(values['features'])}"
    if values.get("location"):
        prompt += f". Focus on location: {values['location']}"
    if values.get("key_details"):
        prompt += f". Key details to highlight: {values['key_details']}"
    if values.get("content"):
        prompt += f". Additional content context: {values['content']}"
    if values.get("links"):
        prompt += f". Include these relevant links: {', '.join(values['links'])}"
    if values.get("article_url"):
        prompt += f". Include content from: {values['article_url']}"
    if values.get("preset"):
        prompt += f". Use {values['preset']} preset style and structure"
    return prompt


def extract_html_document(text: str) -> str:
    """Return the full HTML document inside ``text``, or the raw text."""
    match = DOCTYPE_DOCUMENT.search(text) or HTML_DOCUMENT.search(text)
    return (match.group(0) if match else text).strip()


class NewsletterWriter:
    """Writing capabilities exposed to the planner as tools."""

    def __init__(self, model: LanguageModel):
        self.model = model

    async def build_outline(self, topic: str, sections: Optional[int] = None) -> OutlineOutput:
        max_sections = max(2, min(sections or 4, 8))
        outline = await self.model.generate_structured(
            OutlineSchema,
            "\n".join(
                [
                    f'You are an editor. Create an outline for a weekly newsletter on "{topic}".',
                    "Return ONLY JSON: [{ id, title, blurb, word_goal }].",
                    "3-6 sections recommended; blurb is one sentence.",
                ]
            ),
        )
        return OutlineOutput(outline=outline[:max_sections])

    async def compose_sections(
        self,
        outline: List[Dict[str, Any]],
        summaries: List[Dict[str, Any]],
        tone: Optional[str] = None,
    ) -> SectionsOutput:
        sections = await self.model.generate_structured(
            SectionsSchema,
            "\n".join(
                [
                    "Write newsletter sections using the outline titles.",
                    "Use the provided summaries as factual context; do not fabricate URLs or dates.",
                    f"Tone: {tone or 'warm, expert, concise'}.",
                    "Return ONLY JSON: [{ id, title, bodyHtml, key_takeaways: [string] }].",
                ]
            ),
            input={"outline": outline, "summaries": summaries},
        )
        return SectionsOutput(sections=sections)

    async def pick_ctas(self, topic: str) -> CTAOutput:
        ctas = await self.model.generate_structured(
            CTASchema,
            "\n".join(
                [
                    f'Suggest up to 2 CTAs relevant to "{topic}".',
                    "Return ONLY JSON: [{ title, text, url }].",
                ]
            ),
        )
        return CTAOutput(ctas=ctas)

    async def rewrite_tone(self, html: str, tone: str) -> HtmlOutput:
        result = await self.model.generate_text(
            system="You edit newsletters.",
            prompt=(
                f'Rewrite the following HTML to match tone "{tone}". '
                f"Preserve tags and links. Output HTML only.\n\n{html}"
            ),
            temperature=0.2,
        )
        return HtmlOutput(html=result.text.strip())

    async def write_newsletter(self, values: Dict[str, Any]) -> HtmlOutput:
        """Author a complete HTML newsletter in a single model call."""
        result = await self.model.generate_text(
            system=WRITER_SYSTEM,
            prompt=build_writer_prompt(values),
            temperature=0.4,
        )
        return HtmlOutput(html=extract_html_document(result.text))
