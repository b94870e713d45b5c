# Backend/tests/fixtures/__init__.py
"""
Test fixtures for the briefing pipeline.

Factory functions for creating test data:
- make_raw_item()
- make_feed_payload()
- make_news_item()
- make_settings()
- FakeLLM
"""

from typing import Any, Dict, List, Optional

from app.config import Settings
from app.models.news_public import NewsItem


def make_raw_item(
    index: int = 1,
    *,
    title: Optional[str] = None,
    summary: Optional[str] = "Something happened.",
    url: Optional[str] = None,
    published_at: Optional[str] = "2024-05-01T12:00:00Z",
    source: Optional[str] = "Daydreams Blog",
) -> Dict[str, Any]:
    """Factory function to create a raw feed record as an upstream would send it."""
    record: Dict[str, Any] = {"title": title if title is not None else f"Story {index}"}
    if summary is not None:
        record["summary"] = summary
    record["url"] = url if url is not None else f"https://news.example.com/{index}"
    if published_at is not None:
        record["publishedAt"] = published_at
    if source is not None:
        record["source"] = source
    return record


def make_feed_payload(count: int = 5, container: Optional[str] = "items") -> Any:
    """Factory function for a feed document; container=None gives a bare array."""
    items: List[Dict[str, Any]] = [make_raw_item(i) for i in range(1, count + 1)]
    if container is None:
        return items
    return {container: items}


def make_news_item(index: int = 1, **overrides: Any) -> NewsItem:
    fields: Dict[str, Any] = {
        "title": f"Story {index}",
        "summary": f"Summary of story {index}.",
        "url": f"https://news.example.com/{index}",
        "published_at": "2024-05-01T12:00:00.000Z",
        "source": "Daydreams Blog",
    }
    fields.update(overrides)
    return NewsItem(**fields)


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from the process environment and .env file."""
    fields: Dict[str, Any] = {
        "NEWS_FEED_URL": "https://news.example.com/api/latest",
        "NEWS_FEED_API_KEY": None,
        "OPENAI_API_KEY": None,
        "ALLOWED_ORIGINS": [],
        "PAYMENT_GATEWAY_ORIGINS": ["https://facilitator.daydreams.systems"],
    }
    fields.update(overrides)
    return Settings(_env_file=None, **fields)


class FakeLLM:
    """Stands in for OpenAIService; records every call and replays canned models."""

    def __init__(self, responses: List[Any], model: str = "gpt-test"):
        self.model = model
        self._responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    async def generate_json(self, system_prompt, user_prompt, response_model, action_type="generic"):
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "response_model": response_model,
                "action_type": action_type,
            }
        )
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response_model.model_validate(response), {"ok": True, "model": self.model}
