# app/config.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, List, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Backend/app/config.py → parent = Backend
ENV_FILE = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(ENV_FILE, override=False)  # pre-load in procesomgeving

DEFAULT_NEWS_FEED_URL = "https://daydreams.systems/api/news/latest"
DEFAULT_FACILITATOR_URL = "https://facilitator.daydreams.systems"


def _split_list(value: object) -> object:
    """Accept a JSON list or a comma separated string for list-valued env vars."""
    if value is None:
        return []
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return []
        if raw.startswith("["):
            return json.loads(raw)
        return [part.strip() for part in raw.split(",") if part.strip()]
    return value


class Settings(BaseSettings):
    # ---- Agent / manifest ----
    AGENT_NAME: str = "daydreams-news-agent"
    AGENT_VERSION: str = "0.1.0"
    AGENT_DESCRIPTION: str = (
        "Summarises the latest Daydreams ecosystem news each time it is called."
    )
    ENTRYPOINT_KEY: str = "latest-daydreams-news"
    ENTRYPOINT_DESCRIPTION: str = (
        "Fetch and summarise the latest Daydreams news items into a short briefing."
    )
    ENTRYPOINT_PRICE: str = "0.05"

    # ---- Payments (opaque; handled by the external facilitator) ----
    FACILITATOR_URL: str = DEFAULT_FACILITATOR_URL
    PAY_TO: str = "0xb308ed39d67D0d4BAe5BC2FAEF60c66BBb6AE429"
    NETWORK: str = "base"
    DEFAULT_PRICE: str = "0.1"

    # ---- News feed ----
    NEWS_FEED_URL: str = DEFAULT_NEWS_FEED_URL
    NEWS_FEED_API_KEY: Optional[str] = None
    NEWS_FEED_LABEL: str = "Daydreams"
    FETCH_TIMEOUT_S: float = 30.0
    FETCH_MAX_BYTES: int = 5 * 1024 * 1024

    # ---- Request gate ----
    ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = Field(default_factory=list)
    PAYMENT_GATEWAY_ORIGINS: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: [DEFAULT_FACILITATOR_URL]
    )
    RATE_LIMIT_MAX_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_S: int = 60
    RATE_LIMIT_SWEEP_THRESHOLD: int = 10_000
    MAX_REQUEST_BYTES: int = 1024 * 1024

    # ---- OpenAI ----
    # Niet hard-required: zonder key valt de briefing terug op het vaste script.
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4.1-mini"
    GENERATION_TIMEOUT_S: float = 30.0

    # ---- Process ----
    HOST: str = "0.0.0.0"
    PORT: int = 8787
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("ALLOWED_ORIGINS", "PAYMENT_GATEWAY_ORIGINS", mode="before")
    @classmethod
    def _parse_origin_list(cls, value: object) -> object:
        return _split_list(value)

    @field_validator("ALLOWED_ORIGINS", "PAYMENT_GATEWAY_ORIGINS")
    @classmethod
    def _strip_trailing_slash(cls, value: List[str]) -> List[str]:
        # Browsers never send a trailing slash in Origin.
        return [origin.strip().rstrip("/") for origin in value if origin.strip()]


settings = Settings()


def get_settings() -> Settings:
    return settings

