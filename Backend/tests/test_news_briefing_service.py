from __future__ import annotations

import httpx
import pytest

from app.core.errors import MSG_NO_ENTRIES, MSG_EXTERNAL_UNAVAILABLE, PublicError
from services.briefing_service import BriefingSummarizer
from services.news_briefing_service import DEFAULT_LIMIT, NewsBriefingService, coerce_limit, extract_limit
from services.news_fetch_service import NewsFetcher
from tests.fixtures import FakeLLM, make_feed_payload

FEED_URL = "https://news.example.com/api/latest"


def _service(handler, llm=None) -> NewsBriefingService:
    fetcher = NewsFetcher(transport=httpx.MockTransport(handler))
    return NewsBriefingService(
        feed_url=FEED_URL,
        fetcher=fetcher,
        summarizer=BriefingSummarizer(llm),
    )


@pytest.mark.parametrize(
    "value,expected",
    [
        (0, DEFAULT_LIMIT),
        (11, DEFAULT_LIMIT),
        (-3, DEFAULT_LIMIT),
        ("5", DEFAULT_LIMIT),
        (float("nan"), DEFAULT_LIMIT),
        (float("inf"), DEFAULT_LIMIT),
        (2.5, DEFAULT_LIMIT),
        (True, DEFAULT_LIMIT),
        (None, DEFAULT_LIMIT),
        (3.0, 3),
        (1, 1),
        (10, 10),
    ],
)
def test_coerce_limit(value, expected):
    assert coerce_limit(value) == expected


def test_extract_limit_reads_envelope_and_bare_body():
    assert extract_limit({"input": {"limit": 3}}) == 3
    assert extract_limit({"limit": 4}) == 4
    assert extract_limit({"input": "junk"}) == DEFAULT_LIMIT
    assert extract_limit([1, 2]) == DEFAULT_LIMIT
    assert extract_limit({}) == DEFAULT_LIMIT


@pytest.mark.asyncio
async def test_invoke_respects_limit_and_falls_back_without_llm():
    service = _service(lambda request: httpx.Response(200, json=make_feed_payload(5)))

    response = await service.invoke({"input": {"limit": 3}})

    assert response.mode == "fallback"
    assert response.model == "fallback"
    sources = response.output["sources"]
    assert [s["title"] for s in sources] == ["Story 1", "Story 2", "Story 3"]
    assert sources[0]["publishedAt"] == "2024-05-01T12:00:00.000Z"
    assert response.output["highlights"] == ["Story 1", "Story 2", "Story 3"]
    assert response.output["summary"] == "Latest Daydreams updates include: Story 1; Story 2; Story 3."


@pytest.mark.asyncio
async def test_invoke_with_generation():
    llm = FakeLLM([{"summary": "A. B."}, {"highlights": ["one", "two"]}])
    service = _service(lambda request: httpx.Response(200, json=make_feed_payload(2, container="articles")), llm)

    response = await service.invoke({})

    assert response.mode == "generated"
    assert response.model == "gpt-test"
    assert response.output["summary"] == "A. B."
    assert response.output["highlights"] == ["one", "two"]
    assert len(response.output["sources"]) == 2


@pytest.mark.asyncio
async def test_empty_feed_is_sanitized_failure():
    service = _service(lambda request: httpx.Response(200, json={"results": []}))

    with pytest.raises(PublicError) as exc:
        await service.invoke({"input": {"limit": 5}})

    assert exc.value.status_code == 502
    assert exc.value.message == MSG_NO_ENTRIES


@pytest.mark.asyncio
async def test_upstream_failure_is_sanitized():
    service = _service(lambda request: httpx.Response(500, text="stack trace from news.example.com"))

    with pytest.raises(PublicError) as exc:
        await service.invoke({})

    assert exc.value.status_code == 502
    assert exc.value.message == MSG_EXTERNAL_UNAVAILABLE
    assert "news.example.com" not in exc.value.message


@pytest.mark.asyncio
async def test_invalid_feed_url_never_reaches_network():
    calls = []

    def _handler(request):
        calls.append(request)
        return httpx.Response(200, json=[])

    service = NewsBriefingService(
        feed_url="https://169.254.169.254/latest",
        fetcher=NewsFetcher(transport=httpx.MockTransport(_handler)),
        summarizer=BriefingSummarizer(None),
    )

    with pytest.raises(PublicError) as exc:
        await service.invoke({})

    assert exc.value.status_code == 502
    assert calls == []
