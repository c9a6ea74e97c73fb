import json
from collections.abc import AsyncGenerator
from typing import Callable, Dict, List

import httpx
import pytest

from relay.config import Settings
from relay.main import create_app
from relay.observability.metrics import metrics

ENV_KEYS = (
    "OPENAI_API_KEY",
    "GEMINI_API_KEY",
    "COHERE_API_KEY",
    "APP_AUTH_TOKEN",
    "ALLOWED_ORIGIN",
    "REDIS_URL",
    "RATE_LIMIT_WINDOW_MS",
    "RATE_LIMIT_RPM",
    "RELAY_LOG_PAYLOADS",
)

GEMINI_HOST = "generativelanguage.googleapis.com"
COHERE_HOST = "api.cohere.ai"
OPENAI_HOST = "api.openai.com"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the host environment out of every test."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    metrics.reset()
    yield
    metrics.reset()


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def gemini_ok(text: str = "from gemini", usage=None) -> httpx.Response:
    body = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    if usage is not None:
        body["usageMetadata"] = usage
    return httpx.Response(200, json=body)


def cohere_ok(text: str = "from cohere", meta=None) -> httpx.Response:
    body = {"text": text}
    if meta is not None:
        body["meta"] = meta
    return httpx.Response(200, json=body)


def openai_ok(text: str = "from openai", usage=None) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "choices": [{"index": 0, "message": {"role": "assistant", "content": text}}],
            "usage": usage or {"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5},
        },
    )


class Upstream:
    """Routes outbound provider calls by host and records every request."""

    def __init__(self) -> None:
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.calls: List[httpx.Request] = []

    def on(self, host: str, response) -> None:
        if isinstance(response, httpx.Response):
            self.routes[host] = lambda request, r=response: httpx.Response(
                r.status_code, content=r.content, headers=r.headers
            )
        else:
            self.routes[host] = response

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self.routes.get(request.url.host)
        if handler is None:
            raise httpx.ConnectError("no route", request=request)
        return handler(request)

    def hosts(self) -> List[str]:
        return [r.url.host for r in self.calls]

    def body(self, index: int = -1) -> dict:
        return json.loads(self.calls[index].content)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
async def http_client(upstream: Upstream) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with upstream.client() as c:
        yield c


@pytest.fixture
async def app_factory(upstream: Upstream):
    """Build an app whose outbound HTTP goes to ``upstream``."""
    created = []
    replaced = []

    def _make(**overrides):
        app = create_app(make_settings(**overrides))
        replaced.append(app.state.http_client)
        app.state.http_client = upstream.client()
        created.append(app)
        return app

    yield _make

    for app in created:
        await app.state.http_client.aclose()
    for original in replaced:
        await original.aclose()


@pytest.fixture
async def client_for():
    clients = []

    def _make(app, **kwargs) -> httpx.AsyncClient:
        transport = httpx.ASGITransport(app=app)
        c = httpx.AsyncClient(transport=transport, base_url="http://test", **kwargs)
        clients.append(c)
        return c

    yield _make

    for c in clients:
        await c.aclose()
