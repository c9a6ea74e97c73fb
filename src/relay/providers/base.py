from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import httpx

from relay.models.chat import ChatMessage, ChatOptions, NormalizedChatResponse
from relay.models.errors import ProviderError


class ChatProvider(ABC):
    name: str = "provider"
    # Failures of this provider are surfaced to the caller with the
    # upstream status when it is the last one tried.
    passthrough_errors: bool = False

    def __init__(self, client: httpx.AsyncClient, model: str) -> None:
        self.client = client
        self.model = model
        self.logger = logging.getLogger(f"relay.providers.{self.name}")

    @abstractmethod
    async def call(
        self,
        api_key: str,
        messages: List[ChatMessage],
        options: ChatOptions,
    ) -> NormalizedChatResponse:
        """
        Executes a chat completion request against the provider.
        Raises ProviderError on any non-success response or malformed payload.
        """
        raise NotImplementedError

    async def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Tuple[Dict[str, Any], str]:
        try:
            response = await self.client.post(
                url,
                json=payload,
                headers=headers,
                params=params,
            )
        except httpx.TimeoutException as e:
            raise ProviderError(self.name, f"{self.name} request timed out") from e
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"{self.name} connection failed: {e}") from e

        self.logger.debug("%s %s -> %d", self.model, response.request.url.path, response.status_code)

        if not response.is_success:
            raise ProviderError(
                self.name,
                f"{self.name} error",
                upstream_status=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                self.name,
                f"{self.name} returned invalid JSON",
                upstream_status=response.status_code,
                body=response.text,
            ) from e

        if not isinstance(data, dict):
            raise ProviderError(
                self.name,
                f"{self.name} returned unexpected JSON",
                upstream_status=response.status_code,
                body=response.text,
            )

        return data, response.text
