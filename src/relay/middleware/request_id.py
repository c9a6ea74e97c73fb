import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

UNKNOWN_CLIENT = "unknown"


def resolve_client_id(request: Request) -> str:
    """First X-Forwarded-For hop, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for") or ""
    first = forwarded.split(",")[0].strip()
    if first:
        return first

    if request.client and request.client.host:
        return request.client.host

    return UNKNOWN_CLIENT


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request.state.request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.client_id = resolve_client_id(request)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request.state.request_id
        return response
