from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from pydantic import ValidationError

from relay.models.chat import ChatMessage, ChatOptions, ChatRequest, NormalizedChatResponse
from relay.models.errors import (
    AllProvidersUnavailable,
    InvalidPayload,
    NoProvidersConfigured,
    ProviderError,
    UpstreamPassthroughError,
)
from relay.observability.metrics import metrics
from relay.providers.base import ChatProvider
from relay.reliability.timeouts import DEFAULT_TIMEOUT, TimeoutConfig
from relay.sanitize import sanitize_messages

logger = logging.getLogger("relay.fallback")


@dataclass
class ProviderResult:
    provider: ChatProvider
    response: Optional[NormalizedChatResponse] = None
    error: Optional[ProviderError] = None

    @property
    def ok(self) -> bool:
        return self.response is not None

    @property
    def name(self) -> str:
        return self.provider.name


class FallbackChain:
    """
    Tries configured providers in priority order and returns the first
    normalized response. A failed attempt never aborts the request.
    """

    def __init__(
        self,
        providers: List[Tuple[ChatProvider, str]],
        timeout: TimeoutConfig = DEFAULT_TIMEOUT,
        log_payloads: bool = False,
    ) -> None:
        self.providers = providers
        self.timeout = timeout
        self.log_payloads = log_payloads

    async def attempt(
        self,
        provider: ChatProvider,
        api_key: str,
        messages: List[ChatMessage],
        options: ChatOptions,
    ) -> ProviderResult:
        try:
            response = await asyncio.wait_for(
                provider.call(api_key, messages, options),
                timeout=self.timeout.total_timeout,
            )
        except ProviderError as e:
            error = e
        except asyncio.TimeoutError:
            error = ProviderError(
                provider.name,
                f"{provider.name} exceeded {self.timeout.total_timeout}s deadline",
            )
        except Exception as e:
            logger.exception("Unexpected %s failure", provider.name)
            error = ProviderError(provider.name, f"{provider.name} failed: {e!r}")
        else:
            metrics.inc(f"provider_success_{provider.name}")
            return ProviderResult(provider=provider, response=response)

        metrics.inc(f"provider_failure_{provider.name}")
        logger.warning(
            "Provider %s failed: %s (status=%s) %s",
            provider.name,
            error.message,
            error.upstream_status,
            (error.body or "")[:200],
        )
        return ProviderResult(provider=provider, error=error)

    async def handle(self, raw_body: Any) -> ProviderResult:
        if not self.providers:
            raise NoProvidersConfigured()

        if not isinstance(raw_body, dict):
            raise InvalidPayload("messages must be a non-empty array")

        try:
            request = ChatRequest.model_validate(raw_body)
        except ValidationError as e:
            raise InvalidPayload("Invalid chat request") from e

        messages = sanitize_messages(request.messages)
        options = request.options()

        if self.log_payloads:
            logger.debug(
                "Sanitized payload: %s",
                {"messages": [m.model_dump() for m in messages], **options.model_dump()},
            )

        last: Optional[ProviderResult] = None
        for position, (provider, api_key) in enumerate(self.providers):
            result = await self.attempt(provider, api_key, messages, options)
            if result.ok:
                if position > 0:
                    metrics.inc("fallback_hits")
                return result
            last = result

        logger.error(
            "All providers failed: %s",
            ", ".join(p.name for p, _ in self.providers),
        )

        if (
            last is not None
            and last.provider.passthrough_errors
            and last.error.upstream_status is not None
            and last.error.upstream_status >= 400
        ):
            raise UpstreamPassthroughError(
                f"{last.name} error",
                upstream_status=last.error.upstream_status,
                body=last.error.body or "",
            )

        raise AllProvidersUnavailable()
