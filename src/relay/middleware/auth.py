from __future__ import annotations

import hmac
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from relay.models.errors import Unauthorized
from relay.observability.metrics import metrics

PUBLIC_PATHS = {"/health"}


def bearer_token(request: Request) -> str:
    raw = request.headers.get("authorization") or ""
    return raw[len("Bearer "):] if raw.startswith("Bearer ") else ""


class AuthMiddleware(BaseHTTPMiddleware):
    """Optional app-level auth: a single shared bearer token."""

    def __init__(self, app, token: Optional[str] = None):
        super().__init__(app)
        self.token = token

    async def dispatch(self, request: Request, call_next):
        if (
            not self.token
            or request.method == "OPTIONS"
            or request.url.path in PUBLIC_PATHS
        ):
            return await call_next(request)

        if not hmac.compare_digest(bearer_token(request).encode(), self.token.encode()):
            metrics.inc("total_401", client=getattr(request.state, "client_id", None))
            err = Unauthorized()
            return JSONResponse(status_code=err.status_code, content=err.to_dict())

        return await call_next(request)
