"""
Briefing summarizer.

Turns canonical NewsItems into a two-sentence summary plus highlights, using
OpenAI when configured and a fixed script otherwise. The generated path is a
linear two-step pipeline: ``generate_summary`` then ``generate_highlights``,
with the first step's output passed explicitly into the second.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional, Sequence

from app.core.errors import GenerationUnauthorized
from app.core.logging import get_logger
from app.models.ai import MAX_HIGHLIGHTS, BriefingHighlights, BriefingSummary
from app.models.news_public import NewsItem
from services.openai_service import OpenAIService

logger = get_logger().bind(module="briefing_service")

SUMMARY_CONTEXT_MAX_CHARS = 600
ELLIPSIS = "..."
FALLBACK_MODEL = "fallback"

_SUMMARY_SYSTEM_PROMPT = (
    "You are a concise news editor. Summarize the latest {label} updates "
    "in two concise sentences. Be objective; no preface, no bullets."
)
_HIGHLIGHTS_SYSTEM_PROMPT = (
    "You are a concise news editor. Return up to five bullet highlights, each "
    "referencing a distinct {label} announcement from the articles. One short "
    "sentence per highlight."
)


@dataclass(frozen=True)
class SummaryOutcome:
    summary: str
    highlights: List[str] = field(default_factory=list)
    mode: Literal["generated", "fallback"] = "fallback"
    model: str = FALLBACK_MODEL


def truncate(value: str, max_length: int = SUMMARY_CONTEXT_MAX_CHARS) -> str:
    if len(value) <= max_length:
        return value
    return value[: max(0, max_length - len(ELLIPSIS))].rstrip() + ELLIPSIS


def build_articles_context(items: Sequence[NewsItem]) -> str:
    blocks: List[str] = []
    for index, item in enumerate(items, start=1):
        parts = [f"{index}. {item.title}"]
        if item.source:
            parts.append(f"Source: {item.source}")
        if item.published_at:
            parts.append(f"Published: {item.published_at}")
        if item.summary:
            parts.append(f"Summary: {truncate(item.summary)}")
        if item.url:
            parts.append(f"Link: {item.url}")
        blocks.append("\n".join(parts))
    return "\n\n".join(blocks)


def build_fallback_summary(items: Sequence[NewsItem], label: str = "Daydreams") -> str:
    titles = "; ".join(item.title for item in items)
    return f"Latest {label} updates include: {titles}."


def fallback_outcome(items: Sequence[NewsItem], label: str = "Daydreams") -> SummaryOutcome:
    # Every title becomes a highlight; the five-item cap only binds generated output.
    return SummaryOutcome(
        summary=build_fallback_summary(items, label),
        highlights=[item.title for item in items],
        mode="fallback",
        model=FALLBACK_MODEL,
    )


async def generate_summary(llm: OpenAIService, articles: str, label: str) -> str:
    parsed, _ = await llm.generate_json(
        system_prompt=_SUMMARY_SYSTEM_PROMPT.format(label=label),
        user_prompt=f"Articles:\n{articles}",
        response_model=BriefingSummary,
        action_type="briefing.summary",
    )
    return parsed.summary


async def generate_highlights(llm: OpenAIService, articles: str, summary: str, label: str) -> List[str]:
    parsed, _ = await llm.generate_json(
        system_prompt=_HIGHLIGHTS_SYSTEM_PROMPT.format(label=label),
        user_prompt=f"Articles:\n{articles}\n\nSummary:\n{summary}",
        response_model=BriefingHighlights,
        action_type="briefing.highlights",
    )
    return parsed.highlights[:MAX_HIGHLIGHTS]


class BriefingSummarizer:
    def __init__(self, llm: Optional[OpenAIService] = None, *, label: str = "Daydreams"):
        self.llm = llm
        self.label = label

    @property
    def is_generative(self) -> bool:
        return self.llm is not None

    async def summarize(self, items: Sequence[NewsItem]) -> SummaryOutcome:
        if self.llm is None:
            logger.info("briefing_fallback_used", items=len(items))
            return fallback_outcome(items, self.label)

        articles = build_articles_context(items)
        try:
            summary = await generate_summary(self.llm, articles, self.label)
            if not summary:
                logger.warning("briefing_blank_summary", model=self.llm.model)
                summary = build_fallback_summary(items, self.label)
            highlights = await generate_highlights(self.llm, articles, summary, self.label)
        except GenerationUnauthorized:
            # Rejected credential counts as unconfigured.
            logger.warning("briefing_fallback_used", items=len(items), reason="credential_rejected")
            return fallback_outcome(items, self.label)

        return SummaryOutcome(
            summary=summary,
            highlights=highlights,
            mode="generated",
            model=self.llm.model,
        )
