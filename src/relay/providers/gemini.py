from typing import List

from relay.models.chat import ChatMessage, ChatOptions, NormalizedChatResponse
from relay.models.errors import InvalidResponseFormat
from relay.providers.base import ChatProvider

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


def to_gemini_contents(messages: List[ChatMessage]) -> list:
    return [
        {
            "role": "model" if m.role == "assistant" else "user",
            "parts": [{"text": m.content}],
        }
        for m in messages
    ]


class GeminiProvider(ChatProvider):
    name = "gemini"

    async def call(
        self,
        api_key: str,
        messages: List[ChatMessage],
        options: ChatOptions,
    ) -> NormalizedChatResponse:
        data, raw = await self._post_json(
            GEMINI_URL.format(model=self.model),
            {
                "contents": to_gemini_contents(messages),
                "generationConfig": {
                    "maxOutputTokens": options.max_tokens,
                    "temperature": options.temperature,
                    "topP": options.top_p,
                },
            },
            params={"key": api_key},
            headers={"Content-Type": "application/json"},
        )

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None

        if not isinstance(text, str):
            raise InvalidResponseFormat(
                self.name,
                "Invalid response format from Gemini",
                upstream_status=200,
                body=raw,
            )

        usage = data.get("usageMetadata")
        return NormalizedChatResponse.from_text(
            text,
            usage if isinstance(usage, dict) else {},
        )
