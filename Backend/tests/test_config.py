from __future__ import annotations

import pytest

from app.config import DEFAULT_NEWS_FEED_URL, Settings
from app.core.errors import FetchTimeout, NoItems, PublicError, RateLimited, error_kind, sanitize


def test_defaults(monkeypatch: pytest.MonkeyPatch):
    for name in ("NEWS_FEED_URL", "ALLOWED_ORIGINS", "PORT", "ENTRYPOINT_PRICE"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings(_env_file=None)
    assert settings.NEWS_FEED_URL == DEFAULT_NEWS_FEED_URL
    assert settings.ALLOWED_ORIGINS == []
    assert settings.PAYMENT_GATEWAY_ORIGINS == ["https://facilitator.daydreams.systems"]
    assert settings.PORT == 8787
    assert settings.ENTRYPOINT_PRICE == "0.05"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("https://a.example, https://b.example/", ["https://a.example", "https://b.example"]),
        ('["https://a.example"]', ["https://a.example"]),
        ("", []),
    ],
)
def test_allowed_origins_from_env(monkeypatch: pytest.MonkeyPatch, raw, expected):
    monkeypatch.setenv("ALLOWED_ORIGINS", raw)
    assert Settings(_env_file=None).ALLOWED_ORIGINS == expected


def test_sanitize_maps_internal_errors_to_generic_messages():
    limited = sanitize(RateLimited(client_key="1.2.3.4", retry_after=30))
    assert (limited.status_code, limited.message) == (429, "Too many requests")
    assert limited.headers() == {"Retry-After": "30"}

    assert sanitize(FetchTimeout()).status_code == 504
    assert sanitize(NoItems()).message == "No news entries available"

    internal = sanitize(KeyError("secret path /etc/feed"))
    assert (internal.status_code, internal.message) == (500, "Internal server error")
    assert internal.headers() == {}


def test_sanitize_passes_public_errors_through():
    public = PublicError(status_code=502, message="External service unavailable")
    assert sanitize(public) is public


def test_error_kind():
    assert error_kind(NoItems()) == NoItems.kind
    assert error_kind(ValueError("x")) == "internal_error"
