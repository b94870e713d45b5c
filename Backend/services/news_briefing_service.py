"""
Entry handler for the paid news briefing entrypoint.

Request lifecycle:
    received → validating → fetching → normalizing → summarizing → responding
with a single terminal ``failed`` state reachable from every step. Every
failure is logged with its internal kind and re-raised as a PublicError.
"""

from __future__ import annotations

import math
from typing import Any, Optional

from app.config import Settings
from app.core.errors import PublicError, error_kind, sanitize
from app.core.logging import get_logger
from app.models.news_public import BriefingResult, InvokeResponse
from services.briefing_service import BriefingSummarizer
from services.news_fetch_service import NewsFetcher, build_feed_headers
from services.news_normalization import decode_payload, normalize_payload
from services.openai_service import build_openai_service

logger = get_logger().bind(module="news_briefing_service")

DEFAULT_LIMIT = 5
MIN_LIMIT = 1
MAX_LIMIT = 10


def coerce_limit(value: Any) -> int:
    """
    Accept an integer in [1, 10]; anything else silently becomes the default.

    Malformed input is not reported back so callers cannot probe validation.
    Booleans are rejected; integral floats such as 3.0 count as integers.
    """
    if isinstance(value, bool):
        return DEFAULT_LIMIT
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return DEFAULT_LIMIT
        value = int(value)
    if not isinstance(value, int):
        return DEFAULT_LIMIT
    if MIN_LIMIT <= value <= MAX_LIMIT:
        return value
    return DEFAULT_LIMIT


def extract_limit(body: Any) -> int:
    """Read ``limit`` from ``{"input": {...}}`` or a bare ``{...}`` body."""
    if not isinstance(body, dict):
        return DEFAULT_LIMIT
    payload = body.get("input", body)
    if not isinstance(payload, dict):
        return DEFAULT_LIMIT
    return coerce_limit(payload.get("limit"))


class NewsBriefingService:
    def __init__(
        self,
        *,
        feed_url: str,
        fetcher: NewsFetcher,
        summarizer: BriefingSummarizer,
        feed_api_key: Optional[str] = None,
        fetch_timeout_s: Optional[float] = None,
    ):
        self.feed_url = feed_url
        self.fetcher = fetcher
        self.summarizer = summarizer
        self.feed_api_key = feed_api_key
        self.fetch_timeout_s = fetch_timeout_s

    async def invoke(self, body: Any) -> InvokeResponse:
        state = "received"
        try:
            state = "validating"
            limit = extract_limit(body)

            state = "fetching"
            raw = await self.fetcher.fetch_json(
                self.feed_url,
                headers=build_feed_headers(self.feed_api_key),
                timeout=self.fetch_timeout_s,
            )

            state = "normalizing"
            items = normalize_payload(decode_payload(raw), limit)

            state = "summarizing"
            outcome = await self.summarizer.summarize(items)

            state = "responding"
            result = BriefingResult(
                summary=outcome.summary,
                highlights=outcome.highlights,
                sources=items,
            )
            response = InvokeResponse(
                output=result.to_public(),
                model=outcome.model,
                mode=outcome.mode,
            )
        except PublicError:
            raise
        except Exception as exc:
            public = sanitize(exc)
            log = logger.error if public.status_code >= 500 else logger.warning
            log(
                "briefing_failed",
                state=state,
                kind=error_kind(exc),
                status_code=public.status_code,
                error=exc.__class__.__name__,
                exc_info=error_kind(exc) == "internal_error",
            )
            raise public from exc

        logger.info(
            "briefing_completed",
            limit=limit,
            sources=len(items),
            highlights=len(outcome.highlights),
            mode=outcome.mode,
        )
        return response


def build_news_briefing_service(settings: Settings) -> NewsBriefingService:
    fetcher = NewsFetcher(timeout_s=settings.FETCH_TIMEOUT_S, max_bytes=settings.FETCH_MAX_BYTES)
    summarizer = BriefingSummarizer(build_openai_service(settings), label=settings.NEWS_FEED_LABEL)
    return NewsBriefingService(
        feed_url=settings.NEWS_FEED_URL,
        fetcher=fetcher,
        summarizer=summarizer,
        feed_api_key=settings.NEWS_FEED_API_KEY,
        fetch_timeout_s=settings.FETCH_TIMEOUT_S,
    )
