"""Provider-agnostic base interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from types import TracebackType

from gat_ai.cancel import CancelToken
from gat_ai.types import ChatRequest, StreamEvent


class BaseProvider(ABC):
    """Abstract base class for provider implementations."""

    name: str

    @abstractmethod
    async def complete(self, req: ChatRequest) -> str:
        """Execute a single-shot chat completion and return the answer text."""
        raise NotImplementedError

    @abstractmethod
    def stream(self, req: ChatRequest, cancel: CancelToken | None = None) -> AsyncIterator[StreamEvent]:
        """Yield delta events followed by exactly one done event.

        Failures, cancellation included, are raised rather than yielded.
        """
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release transport resources."""

    async def __aenter__(self) -> BaseProvider:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
