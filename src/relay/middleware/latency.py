import time
from starlette.middleware.base import BaseHTTPMiddleware
from relay.observability.metrics import metrics


class LatencyMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        if request.url.path.startswith("/metrics") or request.url.path == "/health":
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        metrics.observe_latency((time.perf_counter() - start) * 1000)

        if response.status_code >= 500:
            metrics.inc("total_5xx", client=getattr(request.state, "client_id", None))

        return response
