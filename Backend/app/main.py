# Backend/app/main.py
from __future__ import annotations

from typing import Dict, Optional

from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response as StarletteResponse

from api.routers.entrypoints import router as entrypoints_router
from app.config import Settings, get_settings
from app.core.errors import GateRejected, sanitize
from app.core.logging import configure_logging, get_logger
from app.core.rate_limiting import FixedWindowRateLimiter
from app.core.request_gate import RequestGate
from app.core.request_id import clear_request_id, new_request_id, set_request_id

logger = get_logger()


def _peer_host(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> StarletteResponse:
        req_id = new_request_id(request.headers.get("x-request-id"))
        set_request_id(req_id)

        logger.info("request_started", method=request.method, path=str(request.url.path))
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("request_exception", error=str(exc.__class__.__name__))
            clear_request_id()
            raise
        logger.info("request_ended", status_code=response.status_code)
        response.headers["X-Request-Id"] = req_id
        clear_request_id()
        return response


class RequestGateMiddleware(BaseHTTPMiddleware):
    """
    Applies the request gate before routing: size ceiling, CORS preflight,
    origin and rate-limit checks. Rejections never reach a route handler.
    """

    def __init__(self, app, gate: RequestGate):
        super().__init__(app)
        self.gate = gate

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> StarletteResponse:
        classification = self.gate.classify(request.url.path, request.headers, _peer_host(request))
        cors = self.gate.cors_headers(classification)

        try:
            self.gate.check_content_length(request.headers.get("content-length"))

            if request.method == "OPTIONS":
                return Response(status_code=204, headers=self.gate.preflight_headers(classification))

            self.gate.evaluate(classification)
        except GateRejected as exc:
            public = sanitize(exc)
            logger.warning(
                "gate_rejected",
                kind=exc.kind,
                path=str(request.url.path),
                client_key=classification.client_key,
                origin=classification.origin,
                payment_related=classification.is_payment_related,
            )
            headers: Dict[str, str] = dict(cors)
            headers.update(public.headers())
            return JSONResponse(
                status_code=public.status_code,
                content={"detail": public.message},
                headers=headers,
            )

        response = await call_next(request)
        for name, value in cors.items():
            response.headers[name] = value
        return response


def create_app(
    settings: Optional[Settings] = None,
    *,
    rate_limiter: Optional[FixedWindowRateLimiter] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(service_name=settings.AGENT_NAME, level=settings.LOG_LEVEL)

    rate_limiter = rate_limiter or FixedWindowRateLimiter(
        max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_S,
        sweep_threshold=settings.RATE_LIMIT_SWEEP_THRESHOLD,
    )
    gate = RequestGate(
        rate_limiter,
        allowed_origins=settings.ALLOWED_ORIGINS,
        payment_gateway_origins=settings.PAYMENT_GATEWAY_ORIGINS,
        max_request_bytes=settings.MAX_REQUEST_BYTES,
    )

    app = FastAPI(
        title=settings.AGENT_NAME,
        version=settings.AGENT_VERSION,
        description=settings.AGENT_DESCRIPTION,
        docs_url=None,
        redoc_url=None,
    )
    app.state.settings = settings
    app.state.rate_limiter = rate_limiter
    app.state.request_gate = gate

    # Last added = outermost: request ids are set before the gate logs anything.
    app.add_middleware(RequestGateMiddleware, gate=gate)
    app.add_middleware(RequestIdMiddleware)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        # Runs outside the gate middleware, so CORS headers are attached here.
        classification = gate.classify(request.url.path, request.headers, _peer_host(request))
        logger.error("unhandled_exception", error=exc.__class__.__name__, exc_info=True)
        public = sanitize(exc)
        return JSONResponse(
            status_code=public.status_code,
            content={"detail": public.message},
            headers=gate.cors_headers(classification),
        )

    # --- Health endpoints ---
    @app.get("/")
    async def root():
        return {"ok": True, "app": settings.AGENT_NAME, "manifest": "/.well-known/agent.json"}

    @app.head("/")
    async def root_head():
        return Response(status_code=200)

    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.get("/healthz")
    async def healthz():
        return {"status": "healthy"}

    app.include_router(entrypoints_router)

    logger.info("routers_registered", routers=["entrypoints", "health"], entrypoint=settings.ENTRYPOINT_KEY)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=get_settings().HOST, port=get_settings().PORT)
