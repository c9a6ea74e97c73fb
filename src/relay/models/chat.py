from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


DEFAULT_MAX_TOKENS = 300
DEFAULT_TEMPERATURE = 0.8
DEFAULT_TOP_P = 0.9
DEFAULT_FREQUENCY_PENALTY = 0.3
DEFAULT_PRESENCE_PENALTY = 0.3


def _coerce(value: Any, cast, default):
    # Numbers are coerced, not range checked; anything unusable falls back.
    if value is None or isinstance(value, bool):
        return default
    try:
        return cast(value)
    except (TypeError, ValueError, OverflowError):
        return default


def _to_int(value: Any) -> int:
    return int(float(value))


# Request models
class ChatMessage(BaseModel):
    role: str
    content: str


class ChatOptions(BaseModel):
    model: Optional[str] = None
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    top_p: float = DEFAULT_TOP_P
    frequency_penalty: float = DEFAULT_FREQUENCY_PENALTY
    presence_penalty: float = DEFAULT_PRESENCE_PENALTY


class ChatRequest(BaseModel):
    """
    Inbound /v1/chat body. Every field has a default; ``messages`` is kept
    raw here and validated/sanitized by the fallback chain.
    """

    model: Optional[str] = None
    messages: Any = None

    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    top_p: float = DEFAULT_TOP_P
    frequency_penalty: float = DEFAULT_FREQUENCY_PENALTY
    presence_penalty: float = DEFAULT_PRESENCE_PENALTY

    model_config = {"extra": "ignore"}

    @field_validator("model", mode="before")
    @classmethod
    def _model(cls, v):
        if isinstance(v, str) and v.strip():
            return v.strip()
        return None

    @field_validator("max_tokens", mode="before")
    @classmethod
    def _max_tokens(cls, v):
        return _coerce(v, _to_int, DEFAULT_MAX_TOKENS)

    @field_validator("temperature", mode="before")
    @classmethod
    def _temperature(cls, v):
        return _coerce(v, float, DEFAULT_TEMPERATURE)

    @field_validator("top_p", mode="before")
    @classmethod
    def _top_p(cls, v):
        return _coerce(v, float, DEFAULT_TOP_P)

    @field_validator("frequency_penalty", mode="before")
    @classmethod
    def _frequency_penalty(cls, v):
        return _coerce(v, float, DEFAULT_FREQUENCY_PENALTY)

    @field_validator("presence_penalty", mode="before")
    @classmethod
    def _presence_penalty(cls, v):
        return _coerce(v, float, DEFAULT_PRESENCE_PENALTY)

    def options(self) -> ChatOptions:
        return ChatOptions(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            top_p=self.top_p,
            frequency_penalty=self.frequency_penalty,
            presence_penalty=self.presence_penalty,
        )


# Response models
class AssistantMessage(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str


class NormalizedChoice(BaseModel):
    message: AssistantMessage


class NormalizedChatResponse(BaseModel):
    """
    Provider-agnostic response returned to callers, whatever the upstream.
    """

    choices: List[NormalizedChoice]
    usage: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_text(cls, text: str, usage: Optional[Dict[str, Any]] = None) -> "NormalizedChatResponse":
        return cls(
            choices=[NormalizedChoice(message=AssistantMessage(content=text))],
            usage=dict(usage or {}),
        )
