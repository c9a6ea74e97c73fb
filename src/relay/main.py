from __future__ import annotations

import json
import logging
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from relay.config import Settings, settings as env_settings
from relay.middleware.auth import AuthMiddleware
from relay.middleware.cors import install_cors
from relay.middleware.latency import LatencyMiddleware
from relay.middleware.logging import LoggingMiddleware, configure_logging
from relay.middleware.request_id import RequestIDMiddleware, UNKNOWN_CLIENT
from relay.models.errors import InvalidPayload, RateLimited, RelayError
from relay.observability.metrics import metrics
from relay.providers.factory import get_chat_providers
from relay.providers.realtime import RealtimeSessionClient
from relay.reliability.fallback import FallbackChain
from relay.reliability.rate_limiter import SlidingWindowRateLimiter, is_limited
from relay.reliability.redis_rate_limiter import RedisRateLimiter
from relay.reliability.timeouts import TimeoutConfig
from relay.storage.redis_client import get_redis_client

logger = logging.getLogger("relay")


def build_rate_limiter(settings: Settings):
    redis_client = get_redis_client(settings.REDIS_URL)
    if redis_client:
        return RedisRateLimiter(
            redis_client=redis_client,
            window_ms=settings.RATE_LIMIT_WINDOW_MS,
            max_requests=settings.RATE_LIMIT_RPM,
        )
    return SlidingWindowRateLimiter(
        window_ms=settings.RATE_LIMIT_WINDOW_MS,
        max_requests=settings.RATE_LIMIT_RPM,
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or env_settings
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title="relay", openapi_url=None)

    timeout = TimeoutConfig.from_deadline(settings.PROVIDER_TIMEOUT_SECONDS)

    app.state.settings = settings
    app.state.timeout = timeout
    app.state.http_client = httpx.AsyncClient(timeout=timeout.httpx_timeout())
    app.state.rate_limiter = build_rate_limiter(settings)

    # Added innermost first
    app.add_middleware(LatencyMiddleware)
    app.add_middleware(AuthMiddleware, token=settings.auth_token)
    install_cors(app, settings.allowed_origins)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(RelayError)
    async def _relay_error(request: Request, exc: RelayError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled %s on %s %s", type(exc).__name__, request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Server error"})

    @app.on_event("shutdown")
    async def _shutdown():
        await app.state.http_client.aclose()
        if isinstance(app.state.rate_limiter, RedisRateLimiter):
            await app.state.rate_limiter.r.aclose()

    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.get("/metrics")
    async def get_metrics(client: str | None = None):
        return metrics.snapshot(client)

    @app.get("/metrics/prometheus")
    async def prometheus_metrics():
        return Response(content=metrics.prometheus(), media_type="text/plain")

    @app.post("/realtime-token")
    async def realtime_token(request: Request):
        cfg: Settings = request.app.state.settings

        api_key = cfg.provider_key("openai")
        if not api_key:
            raise RelayError("OPENAI_API_KEY not configured", status_code=500)

        session = RealtimeSessionClient(
            request.app.state.http_client,
            model=cfg.REALTIME_MODEL,
            voice=cfg.REALTIME_VOICE,
            timeout=request.app.state.timeout.total_timeout,
        )
        return await session.create_session(api_key)

    @app.post("/v1/chat")
    async def chat(request: Request):
        client_id = getattr(request.state, "client_id", UNKNOWN_CLIENT)

        if await is_limited(request.app.state.rate_limiter, client_id):
            metrics.inc("total_429", client=client_id)
            metrics.inc("rate_limit_hits", client=client_id)
            raise RateLimited()

        metrics.inc("total_requests", client=client_id)

        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            body = None

        cfg: Settings = request.app.state.settings
        chain = FallbackChain(
            get_chat_providers(cfg, request.app.state.http_client),
            timeout=request.app.state.timeout,
            log_payloads=cfg.RELAY_LOG_PAYLOADS,
        )

        try:
            result = await chain.handle(body)
        except InvalidPayload:
            metrics.inc("total_400", client=client_id)
            raise

        metrics.inc("total_success", client=client_id)

        return JSONResponse(
            content=result.response.model_dump(),
            headers={"X-Relay-Provider": result.name},
        )

    return app


app = create_app()


def serve() -> None:
    uvicorn.run(app, host="0.0.0.0", port=env_settings.PORT, log_level="info")
