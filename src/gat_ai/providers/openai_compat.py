"""OpenAI-compatible chat completions provider (DeepSeek, GLM, OpenAI, Ollama)."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable
from contextlib import aclosing
from typing import Any, TypeVar

import httpx

from gat_ai.cancel import CancelToken
from gat_ai.classify import TIMEOUT_MESSAGE, classify, classify_status
from gat_ai.errors import (
    EmptyAnswerError,
    ProtocolError,
    ReasoningExhaustedError,
    StreamCancelledError,
    TransportError,
)
from gat_ai.providers.base import BaseProvider
from gat_ai.sse import StreamSession
from gat_ai.types import ChatRequest, Message, ProviderConfig, StreamEvent

CHAT_TIMEOUT_S = 60.0
STREAM_TIMEOUT_S = 120.0

# fields some models fill with their thinking while leaving content empty
_DIAGNOSTIC_FIELDS = ("reasoning_content", "reasoning")
_SNIPPET_CHARS = 300
_EOF = object()

T = TypeVar("T")


class OpenAICompatibleProvider(BaseProvider):
    """Minimal async wrapper for the ``/chat/completions`` API."""

    _logger = logging.getLogger(__name__)

    def __init__(
        self,
        config: ProviderConfig,
        *,
        timeout_s: float = CHAT_TIMEOUT_S,
        stream_timeout_s: float = STREAM_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.name = config.provider
        self._config = config
        self._timeout_s = timeout_s
        self._stream_timeout_s = stream_timeout_s
        self._client = httpx.AsyncClient(timeout=timeout_s, transport=transport)
        self._headers = {"Content-Type": "application/json"}
        if config.api_key:
            self._headers["Authorization"] = f"Bearer {config.api_key}"

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def complete(self, req: ChatRequest) -> str:
        """Call chat completions once and return the trimmed answer."""
        payload = self._build_payload(req, stream=False)
        self._logger.debug("POST %s model=%s stream=false", self._config.chat_url(), self._config.model)
        try:
            response = await self._client.post(
                self._config.chat_url(),
                headers=self._headers,
                json=payload,
                timeout=self._timeout_s,
            )
        except httpx.HTTPError as exc:
            raise classify(exc, self._config.model) from exc

        if response.status_code >= 400:
            raise classify_status(response.status_code, response.text, self._config.model)
        return self._extract_answer(self._json_or_error(response))

    def stream(self, req: ChatRequest, cancel: CancelToken | None = None) -> AsyncIterator[StreamEvent]:
        """Return an async iterator over the deltas of one streamed answer."""

        async def _gen() -> AsyncIterator[StreamEvent]:
            _check(cancel)
            deadline = asyncio.get_running_loop().time() + self._stream_timeout_s
            request = self._client.build_request(
                "POST",
                self._config.chat_url(),
                headers={**self._headers, "Accept": "text/event-stream"},
                json=self._build_payload(req, stream=True),
                timeout=self._stream_timeout_s,
            )
            self._logger.debug("POST %s model=%s stream=true", request.url, self._config.model)

            try:
                response = await _race(self._client.send(request, stream=True), cancel, deadline)
            except httpx.HTTPError as exc:
                raise classify(exc, self._config.model) from exc

            session = StreamSession()
            try:
                _check(cancel)
                if response.status_code >= 400:
                    try:
                        body = (await response.aread()).decode(errors="replace")
                    except httpx.HTTPError:
                        body = ""
                    raise classify_status(response.status_code, body, self._config.model)

                async with aclosing(response.aiter_text()) as chunks:
                    while True:
                        try:
                            chunk = await _race(anext(chunks, _EOF), cancel, deadline)
                        except httpx.HTTPError as exc:
                            raise classify(exc, self._config.model) from exc
                        if chunk is _EOF:
                            break
                        for text in session.feed(chunk):
                            _check(cancel)
                            yield StreamEvent.delta(text)

                for text in session.flush():
                    _check(cancel)
                    yield StreamEvent.delta(text)
            finally:
                await response.aclose()

            _check(cancel)
            if session.lines_skipped:
                self._logger.debug("Stream finished with %d unparseable lines skipped", session.lines_skipped)
            yield StreamEvent.done(session.full_text)

        return _gen()

    def _build_payload(self, req: ChatRequest, *, stream: bool) -> dict[str, Any]:
        return {
            "model": self._config.model,
            "messages": [self._serialize_message(m) for m in req.messages()],
            "temperature": req.temperature,
            "max_tokens": req.max_tokens,
            "stream": stream,
        }

    @staticmethod
    def _serialize_message(message: Message) -> dict[str, Any]:
        return {"role": message.role, "content": message.content}

    @staticmethod
    def _json_or_error(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise ProtocolError("Response is not valid JSON", response.text[:_SNIPPET_CHARS]) from exc
        if not isinstance(data, dict):
            raise ProtocolError("Response is not a JSON object", response.text[:_SNIPPET_CHARS])
        return data

    @staticmethod
    def _extract_answer(data: dict[str, Any]) -> str:
        snippet = json.dumps(data, ensure_ascii=False)[:_SNIPPET_CHARS]
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise ProtocolError("Response has no choices", snippet)

        choice = choices[0]
        message = choice.get("message") or {}
        if not isinstance(message, dict):
            raise ProtocolError("Response has no message", snippet)
        finish_reason = choice.get("finish_reason")

        content = message.get("content")
        if isinstance(content, str) and content.strip():
            return content.strip()

        for field in _DIAGNOSTIC_FIELDS:
            value = message.get(field)
            if isinstance(value, str) and value.strip():
                raise ReasoningExhaustedError(finish_reason, field=field)
        raise EmptyAnswerError(finish_reason, snippet)


def _check(cancel: CancelToken | None) -> None:
    if cancel is not None and cancel.cancelled:
        raise StreamCancelledError()


async def _race(aw: Awaitable[T], cancel: CancelToken | None, deadline: float) -> T:
    """Await ``aw`` unless the token fires or the deadline passes first."""
    task = asyncio.ensure_future(aw)
    waiters: set[asyncio.Future[Any]] = {task}
    stopper = None
    if cancel is not None:
        stopper = asyncio.ensure_future(cancel.wait())
        waiters.add(stopper)

    remaining = max(deadline - asyncio.get_running_loop().time(), 0)
    try:
        done, _ = await asyncio.wait(waiters, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
    except BaseException:
        task.cancel()
        raise
    finally:
        if stopper is not None:
            stopper.cancel()

    if task in done:
        return task.result()

    task.cancel()
    (leftover,) = await asyncio.gather(task, return_exceptions=True)
    # the awaitable may have finished before the cancel landed
    if isinstance(leftover, httpx.Response):
        await leftover.aclose()
    if cancel is not None and cancel.cancelled:
        raise StreamCancelledError()
    raise TransportError(TIMEOUT_MESSAGE)
