from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NewsItem(BaseModel):
    """
    Canonical news item; the only shape the summarizer consumes.

    Optional fields are either a non-empty string or absent (None), never "".
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str = Field(min_length=1)
    summary: Optional[str] = None
    url: Optional[str] = None
    published_at: Optional[str] = Field(
        default=None,
        alias="publishedAt",
        description="ISO 8601 UTC timestamp, only present when the raw date parsed.",
    )
    source: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _require_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value

    @field_validator("summary", "url", "published_at", "source")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    def to_public(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class BriefingInput(BaseModel):
    limit: Optional[int] = Field(
        default=None,
        ge=1,
        le=10,
        description="Maximum number of news items to include (default 5).",
    )


class BriefingResult(BaseModel):
    summary: str
    highlights: List[str] = Field(default_factory=list)
    sources: List[NewsItem] = Field(default_factory=list)

    def to_public(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "highlights": list(self.highlights),
            "sources": [item.to_public() for item in self.sources],
        }


class InvokeResponse(BaseModel):
    """Envelope returned by the invoke route."""

    output: Dict[str, Any]
    model: str
    mode: Literal["generated", "fallback"]
