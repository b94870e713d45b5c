from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from dateutil import parser as date_parser

from app.core.errors import BadResponseShape, NoItems
from app.core.logging import get_logger
from app.models.news_public import NewsItem

logger = get_logger().bind(module="news_normalization")

# Container keys checked, in priority order, when the payload is an object.
CONTAINER_KEYS: Tuple[str, ...] = ("items", "articles", "data", "results")

TITLE_KEYS: Tuple[str, ...] = ("title", "headline", "name")
SUMMARY_KEYS: Tuple[str, ...] = ("summary", "description", "body", "contentSnippet")
URL_KEYS: Tuple[str, ...] = ("url", "link", "permalink")
PUBLISHED_KEYS: Tuple[str, ...] = ("publishedAt", "published_at", "date", "timestamp")
SOURCE_KEYS: Tuple[str, ...] = ("source", "feed", "channel", "author")


# -------- Document variants ----------------------------------------------------

@dataclass(frozen=True)
class ArrayDocument:
    """The payload itself is the item array."""

    items: List[Any]


@dataclass(frozen=True)
class KeyedDocument:
    """The payload is an object; ``key`` is the container field that matched."""

    key: str
    items: List[Any]


@dataclass(frozen=True)
class EmptyDocument:
    """No array-typed container was found."""

    items: List[Any] = field(default_factory=list)


FeedDocument = Union[ArrayDocument, KeyedDocument, EmptyDocument]


def decode_payload(raw: bytes) -> Any:
    """Parse the raw feed body; anything that is not JSON is a bad response shape."""
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, ValueError) as exc:
        raise BadResponseShape("feed_not_json") from exc


def classify_document(payload: Any) -> FeedDocument:
    if isinstance(payload, list):
        return ArrayDocument(items=payload)
    if isinstance(payload, dict):
        for key in CONTAINER_KEYS:
            candidate = payload.get(key)
            if isinstance(candidate, list):
                return KeyedDocument(key=key, items=candidate)
    return EmptyDocument()


# -------- Field extraction -----------------------------------------------------

def _take_string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _first_string(record: Dict[str, Any], keys: Sequence[str]) -> Optional[str]:
    for key in keys:
        value = _take_string(record.get(key))
        if value is not None:
            return value
    return None


_DATE_DEFAULT = datetime(1970, 1, 1)


def _parse_datetime(value: str) -> Optional[datetime]:
    candidate = value.strip()
    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        pass
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        pass
    # Free-form feed dates ("2024/05/01 12:00", "May 1, 2024"); missing parts come from the epoch.
    try:
        return date_parser.parse(value, default=_DATE_DEFAULT)
    except (ValueError, OverflowError, TypeError):
        return None


def normalize_published_at(value: Optional[str]) -> Optional[str]:
    """
    Return ``YYYY-MM-DDTHH:MM:SS.mmmZ`` for a parseable ISO 8601, RFC 2822 or free-form
    date, None otherwise. Naive values are taken as UTC.
    """
    if not value:
        return None
    parsed = _parse_datetime(value)
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        parsed = parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        return None
    return parsed.strftime("%Y-%m-%dT%H:%M:%S.") + f"{parsed.microsecond // 1000:03d}Z"


def normalize_news_item(raw: Any) -> Optional[NewsItem]:
    """Map one raw record to a NewsItem; None when it has no usable title."""
    if not isinstance(raw, dict):
        return None

    title = _first_string(raw, TITLE_KEYS)
    if title is None:
        return None

    return NewsItem(
        title=title,
        summary=_first_string(raw, SUMMARY_KEYS),
        url=_first_string(raw, URL_KEYS),
        published_at=normalize_published_at(_first_string(raw, PUBLISHED_KEYS)),
        source=_first_string(raw, SOURCE_KEYS),
    )


def normalize_payload(payload: Any, limit: int) -> List[NewsItem]:
    """
    Locate the item array, cap it to ``limit`` and normalize each record.

    Capping happens before normalization, so dropped items are not
    replaced by later ones. Raises NoItems when nothing usable remains.
    """
    document = classify_document(payload)
    candidates = document.items[: max(limit, 0)]

    items: List[NewsItem] = []
    for raw in candidates:
        item = normalize_news_item(raw)
        if item is not None:
            items.append(item)

    dropped = len(candidates) - len(items)
    logger.debug(
        "news_normalized",
        document=type(document).__name__,
        container=getattr(document, "key", None),
        candidates=len(candidates),
        kept=len(items),
        dropped=dropped,
    )

    if not items:
        raise NoItems(limit=limit, candidates=len(candidates))
    return items
