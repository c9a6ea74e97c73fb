import time
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("relay.request")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    One line per request: request id, client, method, path, status, the
    provider that answered (chat only) and duration. Server errors log at
    WARNING so upstream outages stand out.
    """

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        level = logging.WARNING if response.status_code >= 500 else logging.INFO

        logger.log(
            level,
            "%s %s %s %s %d provider=%s %.2fms",
            getattr(request.state, "request_id", "-"),
            getattr(request.state, "client_id", "-"),
            request.method,
            request.url.path,
            response.status_code,
            response.headers.get("x-relay-provider", "-"),
            duration_ms,
        )

        return response
