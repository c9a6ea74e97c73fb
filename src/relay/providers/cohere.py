from typing import List

from relay.models.chat import ChatMessage, ChatOptions, NormalizedChatResponse
from relay.models.errors import InvalidResponseFormat
from relay.providers.base import ChatProvider

COHERE_URL = "https://api.cohere.ai/v1/chat"


def _cohere_role(role: str) -> str:
    return "CHATBOT" if role == "assistant" else "USER"


class CohereProvider(ChatProvider):
    name = "cohere"

    async def call(
        self,
        api_key: str,
        messages: List[ChatMessage],
        options: ChatOptions,
    ) -> NormalizedChatResponse:
        *history, last = messages

        data, raw = await self._post_json(
            COHERE_URL,
            {
                "model": self.model,
                "message": last.content,
                "chat_history": [
                    {"role": _cohere_role(m.role), "message": m.content}
                    for m in history
                ],
                "max_tokens": options.max_tokens,
                "temperature": options.temperature,
                "p": options.top_p,
            },
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

        text = data.get("text")
        if not isinstance(text, str):
            raise InvalidResponseFormat(
                self.name,
                "Invalid response format from Cohere",
                upstream_status=200,
                body=raw,
            )

        meta = data.get("meta")
        return NormalizedChatResponse.from_text(text, meta if isinstance(meta, dict) else {})
