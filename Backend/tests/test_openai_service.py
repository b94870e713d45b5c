from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any, Dict, List

import httpx
import pytest
from openai import AuthenticationError, PermissionDeniedError

from app.core.errors import GenerationFailed, GenerationUnauthorized
from app.models.ai import BriefingHighlights, BriefingSummary
from services.openai_service import OpenAIService, build_openai_service
from tests.fixtures import make_settings


class _FakeCompletions:
    def __init__(self, content: Any = None, exc: Exception | None = None, delay: float = 0.0):
        self.content = content
        self.exc = exc
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def create(self, **kwargs: Any):
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _service(completions: _FakeCompletions, timeout_s: float = 5.0) -> OpenAIService:
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAIService(api_key="sk-test", model="gpt-test", timeout_s=timeout_s, client=client)


@pytest.mark.asyncio
async def test_generate_json_parses_and_validates():
    completions = _FakeCompletions(content='Here you go: {"summary": "  One. Two.  ",}')
    service = _service(completions)

    parsed, meta = await service.generate_json("sys", "user", BriefingSummary, action_type="briefing.summary")

    assert parsed.summary == "One. Two."
    assert meta["model"] == "gpt-test"
    assert completions.calls[0]["model"] == "gpt-test"
    assert completions.calls[0]["response_format"] == {"type": "json_object"}
    system = completions.calls[0]["messages"][0]["content"]
    assert system.startswith("sys")
    assert "JSON Schema" in system


@pytest.mark.asyncio
async def test_highlights_are_capped():
    completions = _FakeCompletions(content='{"highlights": ["a", "b", "", "c", "d", "e", "f"]}')
    parsed, _ = await _service(completions).generate_json("s", "u", BriefingHighlights)
    assert parsed.highlights == ["a", "b", "c", "d", "e"]


@pytest.mark.asyncio
async def test_invalid_output_raises_generation_failed():
    completions = _FakeCompletions(content="not json at all")
    with pytest.raises(GenerationFailed):
        await _service(completions).generate_json("s", "u", BriefingSummary)


@pytest.mark.asyncio
async def test_provider_error_is_single_attempt():
    completions = _FakeCompletions(exc=RuntimeError("quota exceeded"))
    with pytest.raises(GenerationFailed):
        await _service(completions).generate_json("s", "u", BriefingSummary)
    assert len(completions.calls) == 1


@pytest.mark.asyncio
async def test_timeout_raises_generation_failed():
    completions = _FakeCompletions(content='{"summary": "late"}', delay=1.0)
    with pytest.raises(GenerationFailed):
        await _service(completions, timeout_s=0.05).generate_json("s", "u", BriefingSummary)


def test_build_openai_service_requires_key():
    assert build_openai_service(make_settings()) is None
    assert build_openai_service(make_settings(OPENAI_API_KEY="   ")) is None

    service = build_openai_service(make_settings(OPENAI_API_KEY="sk-test", OPENAI_MODEL="gpt-x"))
    assert service is not None
    assert service.model == "gpt-x"


def _status_error(error_cls, status_code: int):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(status_code, request=request, json={"error": {"message": "Incorrect API key"}})
    return error_cls("Incorrect API key provided", response=response, body=None)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error_cls,status_code",
    [(AuthenticationError, 401), (PermissionDeniedError, 403)],
)
async def test_rejected_key_raises_unauthorized(error_cls, status_code):
    completions = _FakeCompletions(exc=_status_error(error_cls, status_code))

    with pytest.raises(GenerationUnauthorized):
        await _service(completions).generate_json("s", "u", BriefingSummary)


@pytest.mark.parametrize("key", ["sk-abc def", "sk-abc\x00"])
def test_malformed_key_counts_as_unconfigured(key):
    assert build_openai_service(make_settings(OPENAI_API_KEY=key)) is None
