"""Async client sending prompts to the configured provider."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from types import TracebackType

import httpx

from gat_ai.cancel import CancelToken
from gat_ai.errors import GatError
from gat_ai.providers.base import BaseProvider
from gat_ai.providers.registry import build_provider
from gat_ai.types import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_STREAM_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    ChatRequest,
    ProviderConfig,
    StreamEvent,
)

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], None]
DoneCallback = Callable[[str], None]


class GatClient:
    """High-level entry point bound to one provider configuration.

    The client owns its HTTP connection pool; use it as an async context
    manager or call ``aclose()`` when finished.
    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        provider: BaseProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._provider = provider or build_provider(config, transport=transport)

    async def aclose(self) -> None:
        await self._provider.aclose()

    async def __aenter__(self) -> GatClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def chat(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Return one complete answer; all-or-nothing."""
        req = ChatRequest(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=DEFAULT_TEMPERATURE if temperature is None else temperature,
            max_tokens=DEFAULT_MAX_TOKENS if max_tokens is None else max_tokens,
        )
        return await self._provider.complete(req)

    def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        cancel: CancelToken | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream delta events then one done event; failures are raised."""
        req = ChatRequest(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=DEFAULT_TEMPERATURE if temperature is None else temperature,
            max_tokens=DEFAULT_STREAM_MAX_TOKENS if max_tokens is None else max_tokens,
            stream=True,
        )
        return self._provider.stream(req, cancel)

    async def stream_events(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        cancel: CancelToken | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Like ``stream`` but a failure arrives as one terminal error event."""
        events = self.stream(
            system_prompt,
            user_prompt,
            cancel=cancel,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        try:
            async with aclosing(events):
                async for event in events:
                    yield event
        except GatError as exc:
            yield StreamEvent.failed(exc)

    async def stream_chat(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        on_chunk: ChunkCallback | None = None,
        on_done: DoneCallback | None = None,
        cancel: CancelToken | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Stream an answer through callbacks and return the full text.

        ``on_chunk`` receives each delta in wire order. ``on_done`` is called
        once with the full text on success and never after a failure. A
        cancelled call raises ``StreamCancelledError``.
        """
        events = self.stream(
            system_prompt,
            user_prompt,
            cancel=cancel,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        full_text = ""
        async with aclosing(events):
            async for event in events:
                if event.type == "delta" and event.text:
                    if on_chunk is not None:
                        on_chunk(event.text)
                elif event.type == "done":
                    full_text = event.full_text or ""

        logger.debug("Stream completed with %d characters", len(full_text))
        if on_done is not None:
            on_done(full_text)
        return full_text


async def chat(
    config: ProviderConfig,
    system_prompt: str,
    user_prompt: str,
    *,
    temperature: float | None = None,
    max_tokens: int | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """One-shot chat completion against ``config``."""
    async with GatClient(config, transport=transport) as client:
        return await client.chat(system_prompt, user_prompt, temperature=temperature, max_tokens=max_tokens)


async def stream_chat(
    config: ProviderConfig,
    system_prompt: str,
    user_prompt: str,
    *,
    on_chunk: ChunkCallback | None = None,
    on_done: DoneCallback | None = None,
    cancel: CancelToken | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Streamed chat completion against ``config``; see ``GatClient.stream_chat``."""
    async with GatClient(config, transport=transport) as client:
        return await client.stream_chat(
            system_prompt,
            user_prompt,
            on_chunk=on_chunk,
            on_done=on_done,
            cancel=cancel,
            temperature=temperature,
            max_tokens=max_tokens,
        )
