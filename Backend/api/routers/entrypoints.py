from __future__ import annotations

import json
from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, Path, Request

from app.config import Settings, get_settings
from app.core.errors import MSG_REQUEST_TOO_LARGE, PublicError
from app.core.logging import get_logger
from app.models.agent_manifest import (
    AgentManifest,
    EntrypointDescriptor,
    build_entrypoint_descriptor,
    build_manifest,
)
from app.models.news_public import InvokeResponse
from services.news_briefing_service import NewsBriefingService, build_news_briefing_service

logger = get_logger().bind(module="entrypoints_router")

router = APIRouter(tags=["entrypoints"])


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_briefing_service(request: Request) -> NewsBriefingService:
    service = getattr(request.app.state, "briefing_service", None)
    if service is None:
        service = build_news_briefing_service(get_app_settings(request))
        request.app.state.briefing_service = service
    return service


async def _read_json_body(request: Request, max_bytes: int) -> Any:
    # Malformed bodies are treated like an empty input; limit falls back to its default.
    raw = bytearray()
    async for chunk in request.stream():
        raw.extend(chunk)
        if len(raw) > max_bytes:
            # Chunked bodies carry no Content-Length, so the gate could not reject them up front.
            raise HTTPException(status_code=413, detail=MSG_REQUEST_TOO_LARGE)
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, ValueError):
        logger.info("invoke_body_unparseable", size=len(raw))
        return {}


@router.get("/.well-known/agent.json", response_model=AgentManifest)
async def get_manifest(settings: Settings = Depends(get_app_settings)) -> AgentManifest:
    return build_manifest(settings)


@router.get("/entrypoints", response_model=List[EntrypointDescriptor])
async def list_entrypoints(settings: Settings = Depends(get_app_settings)) -> List[EntrypointDescriptor]:
    return [build_entrypoint_descriptor(settings)]


@router.post("/entrypoints/{key}/invoke", response_model=InvokeResponse)
async def invoke_entrypoint(
    request: Request,
    key: str = Path(..., description="Entrypoint key"),
    settings: Settings = Depends(get_app_settings),
    service: NewsBriefingService = Depends(get_briefing_service),
) -> InvokeResponse:
    if key != settings.ENTRYPOINT_KEY:
        raise HTTPException(status_code=404, detail="Unknown entrypoint")

    body = await _read_json_body(request, settings.MAX_REQUEST_BYTES)
    try:
        return await service.invoke(body)
    except PublicError as exc:
        raise HTTPException(
            status_code=exc.status_code,
            detail=exc.message,
            headers=exc.headers() or None,
        ) from exc
