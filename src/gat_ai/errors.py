"""Package specific exception hierarchy."""

from __future__ import annotations


class GatError(Exception):
    """Base exception for gat_ai package."""

    cancelled = False


class TransportError(GatError):
    """Raised when the API host cannot be reached or the request times out."""


class ProtocolError(GatError):
    """Raised when the response body does not have the expected shape."""

    def __init__(self, message: str, snippet: str = "") -> None:
        detail = f"\n  raw response: {snippet}" if snippet else ""
        super().__init__(f"{message}{detail}")
        self.snippet = snippet


class EmptyAnswerError(GatError):
    """Raised when the model produced no usable content."""

    def __init__(self, finish_reason: str | None, snippet: str = "") -> None:
        reason = finish_reason or "unknown"
        detail = f"\n  raw response: {snippet}" if snippet else ""
        super().__init__(f"AI returned empty content (finish_reason: {reason}){detail}")
        self.finish_reason = finish_reason
        self.snippet = snippet


class ReasoningExhaustedError(EmptyAnswerError):
    """The model spent its token budget on reasoning and never answered."""

    def __init__(self, finish_reason: str | None, field: str = "reasoning_content") -> None:
        reason = finish_reason or "unknown"
        GatError.__init__(
            self,
            f"Reasoning model ran out of tokens before producing an answer "
            f"(finish_reason: {reason}, only '{field}' was returned)\n"
            "  raise max_tokens or switch to a non-reasoning model "
            "(e.g. deepseek-chat / glm-4-flash)",
        )
        self.finish_reason = finish_reason
        self.snippet = ""
        self.field = field


class UpstreamStatusError(GatError):
    """Represents a non-2xx HTTP status with a classified, human readable message."""

    def __init__(self, message: str, status_code: int, detail: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class StreamCancelledError(GatError):
    """Raised when the caller aborts a request through its cancel token."""

    cancelled = True

    def __init__(self, message: str = "request cancelled") -> None:
        super().__init__(message)


class UnsupportedProviderError(GatError):
    """Raised when a provider name is not in the registry."""

    def __init__(self, provider: str, known: list[str] | None = None) -> None:
        supported = f", supported providers: {', '.join(known)}" if known else ""
        super().__init__(f"Provider '{provider}' is not supported{supported}")
        self.provider = provider


class MissingAPIKeyError(GatError):
    """Raised when a provider requiring a key has none configured."""

    def __init__(self, provider: str) -> None:
        super().__init__(
            f"API key for {provider} is not configured, run: "
            f"gat config set --provider {provider} --api-key <your-key>"
        )
        self.provider = provider
