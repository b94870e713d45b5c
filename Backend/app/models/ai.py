# Backend/app/models/ai.py
from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field, field_validator


MAX_HIGHLIGHTS = 5


class BriefingSummary(BaseModel):
    summary: str = Field(description="Two concise sentences summarising the articles.")

    @field_validator("summary")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()


class BriefingHighlights(BaseModel):
    highlights: List[str] = Field(
        default_factory=list,
        description="Up to five bullet highlights, each about a distinct article.",
    )

    @field_validator("highlights")
    @classmethod
    def _clean(cls, value: List[str]) -> List[str]:
        cleaned = [h.strip() for h in value if isinstance(h, str) and h.strip()]
        return cleaned[:MAX_HIGHLIGHTS]
