"""Content models exchanged between the newsletter tools."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SourceItem(BaseModel):
    """A single fetched article."""

    id: Union[int, str] = Field(..., description="Unique identifier")
    title: str = Field(..., description="Article title")
    url: str = Field("", description="Original URL")
    published: str = Field("", description="Publication date (YYYY-MM-DD)")
    content: str = Field("", description="Article text")


class Summary(BaseModel):
    """A short factual blurb for one article."""

    id: Optional[Union[int, str]] = Field(None, description="Source item id")
    title: str = Field(..., description="Article title")
    url: str = Field("", description="Original URL")
    summary: str = Field("", description="Summary text")
    published: str = Field("", description="Publication date")


class OutlineItem(BaseModel):
    """One planned newsletter section."""

    id: Union[int, str]
    title: str
    blurb: Optional[str] = None
    word_goal: Optional[int] = Field(None, ge=100, le=400)


class Section(BaseModel):
    """A composed newsletter section."""

    model_config = ConfigDict(populate_by_name=True)

    id: Union[int, str]
    title: str
    body_html: str = Field(..., alias="bodyHtml", min_length=1)
    key_takeaways: List[str] = Field(default_factory=list)


class CTALink(BaseModel):
    """A call-to-action link shown at the end of a newsletter."""

    title: str
    text: str
    url: str


class CallToAction(CTALink):
    """A suggested call to action; its URL must be absolute."""

    @field_validator("url")
    @classmethod
    def check_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("url must be an absolute http(s) URL")
        return value


class FooterSettings(BaseModel):
    """Organisation details rendered in the email footer."""

    org_name: str = "Acme Publishing Co."
    address_line1: Optional[str] = "123 Market Street"
    address_line2: Optional[str] = "San Francisco, CA 94105"
    unsubscribe_url: Optional[str] = "https://example.com/unsubscribe"
    website_url: Optional[str] = "https://example.com"
    twitter_url: Optional[str] = "https://twitter.com/example"
    linkedin_url: Optional[str] = "https://linkedin.com/company/example"
    style: str = "color:#666;font-size:12px;line-height:1.4;"
    custom_html: Optional[str] = None


class EmailRenderInput(BaseModel):
    """Everything the email renderer needs to produce a document."""

    title: str
    intro: str = "Here's what's new this week."
    newsletter_type: Optional[str] = None
    features: Optional[List[str]] = None
    links: Optional[List[str]] = None
    location: Optional[str] = None
    content: Optional[str] = None
    key_details: Optional[str] = None
    tone: Optional[str] = None
    sections: Optional[int] = None
    preset: Optional[str] = None
    items: List[Dict[str, Any]] = Field(default_factory=list)
    ctas: List[CTALink] = Field(default_factory=list)


# Tool outputs


class FetchSourcesOutput(BaseModel):
    items: List[SourceItem] = Field(default_factory=list)


class SummarizeOutput(BaseModel):
    summaries: List[Summary] = Field(default_factory=list)


class OutlineOutput(BaseModel):
    outline: List[OutlineItem] = Field(default_factory=list)


class SectionsOutput(BaseModel):
    sections: List[Section] = Field(default_factory=list)


class CTAOutput(BaseModel):
    ctas: List[CallToAction] = Field(default_factory=list)


class HtmlOutput(BaseModel):
    html: str = ""
