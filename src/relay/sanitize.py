from __future__ import annotations

from typing import Any, List

from relay.models.chat import ChatMessage
from relay.models.errors import InvalidPayload

MAX_MESSAGES = 20
MAX_ROLE_CHARS = 32
MAX_CONTENT_CHARS = 4000
DEFAULT_ROLE = "user"


def sanitize_message(raw: Any) -> ChatMessage:
    if not isinstance(raw, dict):
        raw = {}

    role = raw.get("role")
    if not isinstance(role, str) or not role:
        role = DEFAULT_ROLE

    content = raw.get("content")
    if not isinstance(content, str):
        content = ""

    return ChatMessage(role=role[:MAX_ROLE_CHARS], content=content[:MAX_CONTENT_CHARS])


def sanitize_messages(messages: Any) -> List[ChatMessage]:
    """
    Keep the most recent MAX_MESSAGES in order, bounding role and content.
    Raises InvalidPayload unless ``messages`` is a non-empty list.
    """
    if not isinstance(messages, list) or not messages:
        raise InvalidPayload("messages must be a non-empty array")

    return [sanitize_message(m) for m in messages[-MAX_MESSAGES:]]
