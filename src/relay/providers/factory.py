from typing import List, Tuple

import httpx

from relay.config import Settings
from relay.providers.base import ChatProvider
from relay.providers.cohere import CohereProvider
from relay.providers.gemini import GeminiProvider
from relay.providers.openai import OpenAIProvider

# Priority order of the fallback chain
PROVIDER_ORDER = ("gemini", "cohere", "openai")


def get_chat_providers(
    settings: Settings,
    client: httpx.AsyncClient,
) -> List[Tuple[ChatProvider, str]]:
    """Configured providers, in priority order, paired with their API key."""
    models = {
        "gemini": settings.GEMINI_MODEL,
        "cohere": settings.COHERE_MODEL,
        "openai": settings.OPENAI_MODEL,
    }
    classes = {
        "gemini": GeminiProvider,
        "cohere": CohereProvider,
        "openai": OpenAIProvider,
    }

    chain = []
    for name in PROVIDER_ORDER:
        key = settings.provider_key(name)
        if not key:
            continue
        chain.append((classes[name](client, models[name]), key))

    return chain
