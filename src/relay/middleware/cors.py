from __future__ import annotations

from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware


def origin_allowed(origin: Optional[str], allowed: Optional[List[str]]) -> bool:
    # No allow-list, or a non-browser caller without Origin
    if not allowed or not origin:
        return True
    return "*" in allowed or origin in allowed


class OriginGuardMiddleware(BaseHTTPMiddleware):
    """Rejects browser requests from origins outside the allow-list."""

    def __init__(self, app, allowed: Optional[List[str]] = None):
        super().__init__(app)
        self.allowed = allowed

    async def dispatch(self, request: Request, call_next):
        if not origin_allowed(request.headers.get("origin"), self.allowed):
            return JSONResponse(status_code=403, content={"error": "Not allowed by CORS"})
        return await call_next(request)


def install_cors(app: FastAPI, allowed: Optional[List[str]]) -> None:
    """
    Order matters: the guard is added first so it runs inside
    CORSMiddleware, which then answers preflights for allowed origins.
    Credentials are never allowed.
    """
    app.add_middleware(OriginGuardMiddleware, allowed=allowed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if not allowed or "*" in allowed else allowed,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
