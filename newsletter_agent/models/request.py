"""Inbound request models for the agent API."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import (
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    model_validator,
)

ISO_DATE = r"^\d{4}-\d{2}-\d{2}$"

# Descriptive fields forwarded to the writer and renderer tools.
DESCRIPTIVE_FIELDS = (
    "title",
    "intro",
    "newsletter_type",
    "features",
    "links",
    "location",
    "content",
    "key_details",
    "tone",
    "sections",
    "preset",
)


class NewsletterRequest(BaseModel):
    """A validated newsletter drafting request."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    topic: str = Field(..., min_length=2, description="Newsletter topic")
    start_date: Optional[str] = Field(None, pattern=ISO_DATE, description="YYYY-MM-DD")
    end_date: Optional[str] = Field(None, pattern=ISO_DATE, description="YYYY-MM-DD")
    title: str = Field("Weekly Digest", min_length=2, description="Newsletter title")
    intro: Optional[str] = Field(None, description="Introduction paragraph")
    newsletter_type: Optional[str] = Field(None, description="Newsletter type")
    features: Optional[List[str]] = Field(None, description="Content features")
    links: Optional[List[str]] = Field(None, description="Links to include")
    location: Optional[str] = Field(None, description="Location focus")
    content: Optional[str] = Field(None, description="Additional content context")
    key_details: Optional[str] = Field(None, description="Key details to highlight")
    tone: Optional[List[str]] = Field(None, description="Tone descriptors")
    sections: Optional[int] = Field(None, ge=2, le=8, description="Section count")
    preset: Optional[str] = Field(None, description="Preset style name")
    dry_run: bool = Field(True, alias="dryRun", description="Withhold delivery")
    to: Optional[EmailStr] = Field(None, description="Delivery recipient")
    provider: Literal["gemini"] = Field("gemini", description="Model provider")
    article_url: Optional[AnyHttpUrl] = Field(None, description="Seed article URL")
    article_html: Optional[str] = Field(None, description="Seed article HTML")

    @model_validator(mode="after")
    def check_dates_and_recipient(self) -> "NewsletterRequest":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be ≤ end_date")
        if not self.dry_run and not self.to:
            raise ValueError("to is required when dryRun is false")
        return self

    @property
    def tone_text(self) -> Optional[str]:
        """Tone descriptors joined for prompts, or None."""
        return ", ".join(self.tone) if self.tone else None

    def descriptive_fields(self) -> Dict[str, Any]:
        """Descriptive fields as tool arguments, skipping unset values."""
        values = {name: getattr(self, name) for name in DESCRIPTIVE_FIELDS}
        return {k: v for k, v in values.items() if v is not None}

    def writer_arguments(self) -> Dict[str, Any]:
        """The full request as ``write_newsletter`` arguments."""
        args = self.descriptive_fields()
        args.update(
            topic=self.topic,
            start_date=self.start_date,
            end_date=self.end_date,
            article_html=self.article_html,
            article_url=str(self.article_url) if self.article_url else None,
        )
        return {k: v for k, v in args.items() if v is not None}


class SendRequest(BaseModel):
    """Body of a direct send request."""

    to: EmailStr = Field(..., description="Recipient")
    subject: str = Field(..., min_length=1, description="Subject line")
    html: str = Field(..., min_length=1, description="HTML body")
