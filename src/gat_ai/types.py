"""Provider-agnostic request, config and stream event models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 1000
DEFAULT_STREAM_MAX_TOKENS = 6000


class ProviderConfig(BaseModel):
    """Connection details for one OpenAI-compatible backend."""

    model_config = ConfigDict(frozen=True)

    api_key: str = Field(default="", repr=False)
    base_url: str
    model: str
    provider: str = "openai"

    def chat_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"


class Message(BaseModel):
    """Single chat message."""

    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """One system/user exchange sent to the chat completions endpoint."""

    system_prompt: str
    user_prompt: str
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, gt=0)
    stream: bool = False

    def messages(self) -> list[Message]:
        return [
            Message(role="system", content=self.system_prompt),
            Message(role="user", content=self.user_prompt),
        ]


class StreamEvent(BaseModel):
    """Streaming events: any number of deltas, then one done or error."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    type: Literal["delta", "done", "error"]
    text: str | None = None
    full_text: str | None = None
    error: Exception | None = None
    # provider-specific payload kept for debugging
    raw: dict[str, Any] | None = None

    @classmethod
    def delta(cls, text: str, raw: dict[str, Any] | None = None) -> StreamEvent:
        return cls(type="delta", text=text, raw=raw)

    @classmethod
    def done(cls, full_text: str) -> StreamEvent:
        return cls(type="done", full_text=full_text)

    @classmethod
    def failed(cls, error: Exception) -> StreamEvent:
        return cls(type="error", error=error)

    @property
    def terminal(self) -> bool:
        return self.type != "delta"
