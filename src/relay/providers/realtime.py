import asyncio
import logging
from typing import Any, Dict

import httpx

from relay.models.errors import RealtimeSessionError, RelayError
from relay.providers.openai import OPENAI_BASE_URL

logger = logging.getLogger("relay.providers.realtime")


class RealtimeSessionClient:
    """Creates ephemeral OpenAI Realtime sessions for voice clients."""

    def __init__(self, client: httpx.AsyncClient, model: str, voice: str, timeout: float) -> None:
        self.client = client
        self.model = model
        self.voice = voice
        self.timeout = timeout

    async def create_session(self, api_key: str) -> Dict[str, Any]:
        """
        Returns the upstream session JSON verbatim; it carries the ephemeral
        ``client_secret.value`` the app connects with.
        """
        try:
            response = await asyncio.wait_for(
                self.client.post(
                    f"{OPENAI_BASE_URL}/realtime/sessions",
                    json={
                        "model": self.model,
                        "voice": self.voice,
                        "modalities": ["audio", "text"],
                    },
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                ),
                timeout=self.timeout,
            )
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.error("Realtime session request failed: %r", e)
            raise RelayError("Server error", status_code=500) from e

        if not response.is_success:
            logger.warning(
                "Realtime session rejected: %d %s",
                response.status_code,
                response.text[:200],
            )
            raise RealtimeSessionError(response.status_code, response.text)

        try:
            return response.json()
        except ValueError as e:
            raise RealtimeSessionError(response.status_code, response.text) from e
