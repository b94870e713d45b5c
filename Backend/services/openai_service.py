# services/openai_service.py
from __future__ import annotations

import asyncio
import json
import re
import time
from typing import Any, Dict, Optional, Tuple, Type, TypeVar

from openai import AsyncOpenAI, AuthenticationError, PermissionDeniedError
from pydantic import BaseModel, ValidationError

from app.config import Settings
from app.core.errors import GenerationFailed, GenerationUnauthorized
from app.core.logging import get_logger

logger = get_logger().bind(module="openai_service")

_JSON_HINT = (
    "Respond with exactly one valid JSON object: no explanation, "
    "no extra text, no markdown, no code fences."
)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _pydantic_schema_dict(model: Type[BaseModel]) -> Dict[str, Any]:
    return model.model_json_schema()

def _extract_first_json(text: str) -> str:
    """
    Grab the first {...} block and drop trailing commas.
    """
    m = re.search(r"\{.*\}", text, flags=re.DOTALL)
    candidate = m.group(0) if m else text.strip()
    candidate = re.sub(r",\s*([}\]])", r"\1", candidate)
    return candidate.strip()


class OpenAIService:
    """
    JSON-constrained text generation with Pydantic validation.

    One attempt per call; the caller decides what a failure means. Each call
    is bounded by ``timeout_s`` on both the SDK and the awaiting task.
    """

    def __init__(self, api_key: str, model: str, timeout_s: float = 30.0, client: Optional[Any] = None):
        self.model = model
        self.timeout_s = timeout_s
        self.client = client or AsyncOpenAI(api_key=api_key, timeout=timeout_s, max_retries=0)

    def _build_messages(self, system_prompt: str, user_prompt: str, schema: Dict[str, Any]) -> list[dict]:
        schema_hint = json.dumps(schema, ensure_ascii=False)
        system = (
            f"{system_prompt}\n\n{_JSON_HINT}\n"
            f"The JSON must match this JSON Schema exactly:\n{schema_hint}"
        )
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": user_prompt},
        ]

    async def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        response_model: Type[ModelT],
        action_type: str = "generic",
    ) -> Tuple[ModelT, Dict[str, Any]]:
        """
        Returns: (parsed_model_instance, meta_dict)
        """
        schema = _pydantic_schema_dict(response_model)
        messages = self._build_messages(system_prompt, user_prompt, schema)
        t0 = time.perf_counter()

        try:
            completion = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=0.2,
                    response_format={"type": "json_object"},
                ),
                timeout=self.timeout_s,
            )
            raw_text = completion.choices[0].message.content or ""
            data = json.loads(_extract_first_json(raw_text))
            parsed = response_model.model_validate(data)
        except asyncio.TimeoutError as exc:
            logger.warning("ai_generation_timeout", action_type=action_type, model=self.model, timeout_s=self.timeout_s)
            raise GenerationFailed("timeout") from exc
        except (AuthenticationError, PermissionDeniedError) as exc:
            logger.warning("ai_generation_unauthorized", action_type=action_type, model=self.model, status_code=exc.status_code)
            raise GenerationUnauthorized("credential_rejected") from exc
        except (ValidationError, json.JSONDecodeError, IndexError, AttributeError) as exc:
            logger.warning("ai_generation_invalid_output", action_type=action_type, model=self.model, error=str(exc))
            raise GenerationFailed("invalid_output") from exc
        except Exception as exc:
            logger.warning("ai_generation_failed", action_type=action_type, model=self.model, error=exc.__class__.__name__)
            raise GenerationFailed("provider_error") from exc

        duration_ms = int((time.perf_counter() - t0) * 1000)
        logger.info("ai_generation_ok", action_type=action_type, model=self.model, duration_ms=duration_ms)
        return parsed, {
            "ok": True,
            "model": self.model,
            "duration_ms": duration_ms,
        }


def build_openai_service(settings: Settings) -> Optional[OpenAIService]:
    """
    Return a service when an OpenAI key is configured, None otherwise.

    A malformed key (embedded whitespace or control characters) or one the
    SDK refuses at construction time counts as unconfigured. Keys the
    provider later rejects are handled per call by the summarizer.
    """
    api_key = (settings.OPENAI_API_KEY or "").strip()
    if not api_key:
        return None
    if not api_key.isprintable() or any(ch.isspace() for ch in api_key):
        logger.warning("openai_key_malformed", length=len(api_key))
        return None
    try:
        return OpenAIService(
            api_key=api_key,
            model=settings.OPENAI_MODEL,
            timeout_s=settings.GENERATION_TIMEOUT_S,
        )
    except Exception as exc:
        logger.error("openai_client_init_failed", error=exc.__class__.__name__)
        return None
