from typing import List

from relay.models.chat import ChatMessage, ChatOptions, NormalizedChatResponse
from relay.models.errors import InvalidResponseFormat
from relay.providers.base import ChatProvider

OPENAI_BASE_URL = "https://api.openai.com/v1"


class OpenAIProvider(ChatProvider):
    name = "openai"
    passthrough_errors = True

    async def call(
        self,
        api_key: str,
        messages: List[ChatMessage],
        options: ChatOptions,
    ) -> NormalizedChatResponse:
        data, raw = await self._post_json(
            f"{OPENAI_BASE_URL}/chat/completions",
            {
                "model": options.model or self.model,
                "messages": [m.model_dump() for m in messages],
                "max_tokens": options.max_tokens,
                "temperature": options.temperature,
                "top_p": options.top_p,
                "frequency_penalty": options.frequency_penalty,
                "presence_penalty": options.presence_penalty,
            },
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None

        if not isinstance(content, str):
            raise InvalidResponseFormat(
                self.name,
                "Invalid response format from OpenAI",
                upstream_status=200,
                body=raw,
            )

        usage = data.get("usage")
        return NormalizedChatResponse.from_text(content, usage if isinstance(usage, dict) else {})
