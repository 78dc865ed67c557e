import asyncio
import json
import unittest
from collections.abc import AsyncIterator, Callable

import httpx

from gat_ai.cancel import CancelToken
from gat_ai.classify import TIMEOUT_MESSAGE
from gat_ai.client import GatClient, chat, stream_chat
from gat_ai.errors import (
    EmptyAnswerError,
    ProtocolError,
    ReasoningExhaustedError,
    StreamCancelledError,
    TransportError,
    UpstreamStatusError,
)
from gat_ai.providers.openai_compat import OpenAICompatibleProvider, _race
from gat_ai.types import ProviderConfig, StreamEvent

CONFIG = ProviderConfig(
    provider="deepseek",
    api_key="sk-test",
    base_url="https://api.example.test/v1",
    model="deepseek-chat",
)


def _completion(content: str | None, reasoning: str | None = None, finish_reason: str = "stop") -> dict:
    message: dict = {"role": "assistant", "content": content}
    if reasoning is not None:
        message["reasoning_content"] = reasoning
    return {"choices": [{"message": message, "finish_reason": finish_reason}]}


def _sse(*contents: str) -> bytes:
    lines = [f"data: {json.dumps({'choices': [{'delta': {'content': c}}]})}\n\n" for c in contents]
    return "".join(lines).encode()


async def _body(chunks: list[bytes], stall: asyncio.Event | None = None) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk
    if stall is not None:
        await stall.wait()


def _transport(handler: Callable[[httpx.Request], httpx.Response], seen: list[httpx.Request]) -> httpx.MockTransport:
    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    return httpx.MockTransport(_record)


def _streaming(chunks: list[bytes], stall: asyncio.Event | None = None) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=_body(chunks, stall))

    return handler


def _raise(exc: Exception) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc

    return handler


class ChatTests(unittest.TestCase):
    def setUp(self) -> None:
        self.seen: list[httpx.Request] = []

    def _chat(self, handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> str:
        return asyncio.run(chat(CONFIG, "sys", "diff here", transport=_transport(handler, self.seen), **kwargs))

    def test_sends_two_messages_and_defaults(self) -> None:
        answer = self._chat(lambda r: httpx.Response(200, json=_completion("  feat: add x \n")))

        self.assertEqual(answer, "feat: add x")
        request = self.seen[0]
        self.assertEqual(str(request.url), "https://api.example.test/v1/chat/completions")
        self.assertEqual(request.headers["Authorization"], "Bearer sk-test")
        payload = json.loads(request.content)
        self.assertEqual(
            payload["messages"],
            [{"role": "system", "content": "sys"}, {"role": "user", "content": "diff here"}],
        )
        self.assertEqual(payload["model"], "deepseek-chat")
        self.assertEqual(payload["temperature"], 0.3)
        self.assertEqual(payload["max_tokens"], 1000)
        self.assertIs(payload["stream"], False)

    def test_overrides_are_sent(self) -> None:
        self._chat(lambda r: httpx.Response(200, json=_completion("ok")), temperature=0.0, max_tokens=500)
        payload = json.loads(self.seen[0].content)
        self.assertEqual(payload["temperature"], 0.0)
        self.assertEqual(payload["max_tokens"], 500)

    def test_reasoning_only_answer_is_actionable_error(self) -> None:
        handler = lambda r: httpx.Response(200, json=_completion("", reasoning="thinking...", finish_reason="length"))
        with self.assertRaises(ReasoningExhaustedError) as ctx:
            self._chat(handler)
        self.assertIn("length", str(ctx.exception))
        self.assertIn("max_tokens", str(ctx.exception))

    def test_empty_answer_includes_finish_reason_and_snippet(self) -> None:
        with self.assertRaises(EmptyAnswerError) as ctx:
            self._chat(lambda r: httpx.Response(200, json=_completion("   ", finish_reason="content_filter")))
        self.assertNotIsInstance(ctx.exception, ReasoningExhaustedError)
        self.assertIn("content_filter", str(ctx.exception))
        self.assertIn("choices", ctx.exception.snippet)

    def test_missing_choices_is_protocol_error(self) -> None:
        with self.assertRaises(ProtocolError):
            self._chat(lambda r: httpx.Response(200, json={"object": "error"}))

    def test_non_object_message_is_protocol_error(self) -> None:
        with self.assertRaises(ProtocolError) as ctx:
            self._chat(lambda r: httpx.Response(200, json={"choices": [{"message": "hi"}]}))
        self.assertIn("no message", str(ctx.exception))

    def test_invalid_json_is_protocol_error(self) -> None:
        with self.assertRaises(ProtocolError) as ctx:
            self._chat(lambda r: httpx.Response(200, text="<html>bad gateway</html>"))
        self.assertIn("bad gateway", ctx.exception.snippet)

    def test_status_errors_are_classified(self) -> None:
        handler = lambda r: httpx.Response(429, json={"error": {"message": "quota"}})
        with self.assertRaises(UpstreamStatusError) as ctx:
            self._chat(handler)
        self.assertEqual(ctx.exception.status_code, 429)
        self.assertIn("deepseek-chat", str(ctx.exception))

    def test_transport_failures_are_classified(self) -> None:
        with self.assertRaises(TransportError) as ctx:
            self._chat(_raise(httpx.ConnectError("[Errno -2] Name or service not known")))
        self.assertIn("Cannot reach the API host", str(ctx.exception))

        with self.assertRaises(TransportError) as ctx:
            self._chat(_raise(httpx.ReadTimeout("timed out")))
        self.assertEqual(str(ctx.exception), TIMEOUT_MESSAGE)


class StreamChatTests(unittest.TestCase):
    def setUp(self) -> None:
        self.seen: list[httpx.Request] = []

    def test_callbacks_and_result(self) -> None:
        body = _sse("Looks ", "good", "!") + b"data: [DONE]\n\n"
        # split mid-line and mid-prefix
        chunks = [body[:7], body[7:50], body[50:]]
        received: list[str] = []
        done: list[str] = []

        result = asyncio.run(
            stream_chat(
                CONFIG,
                "sys",
                "diff",
                on_chunk=received.append,
                on_done=done.append,
                transport=_transport(_streaming(chunks), self.seen),
            )
        )

        self.assertEqual(received, ["Looks ", "good", "!"])
        self.assertEqual(done, ["Looks good!"])
        self.assertEqual(result, "Looks good!")

        request = self.seen[0]
        self.assertEqual(request.headers["Accept"], "text/event-stream")
        payload = json.loads(request.content)
        self.assertIs(payload["stream"], True)
        self.assertEqual(payload["max_tokens"], 6000)

    def test_malformed_frame_does_not_end_stream(self) -> None:
        chunks = [_sse("a"), b"data: {not valid json\n", _sse("b")]
        result = asyncio.run(stream_chat(CONFIG, "s", "u", transport=_transport(_streaming(chunks), self.seen)))
        self.assertEqual(result, "ab")

    def test_transport_error_mid_stream_rejects_without_done(self) -> None:
        async def broken_body() -> AsyncIterator[bytes]:
            yield _sse("a")
            raise httpx.ReadError("connection reset")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=broken_body())

        received: list[str] = []
        done: list[str] = []
        with self.assertRaises(TransportError) as ctx:
            asyncio.run(
                stream_chat(
                    CONFIG,
                    "s",
                    "u",
                    on_chunk=received.append,
                    on_done=done.append,
                    transport=_transport(handler, self.seen),
                )
            )
        self.assertIn("connection reset", str(ctx.exception))
        self.assertEqual(received, ["a"])
        self.assertEqual(done, [])

    def test_cancel_after_chunks_stops_delivery(self) -> None:
        async def scenario() -> tuple[list[str], list[str]]:
            token = CancelToken()
            stall = asyncio.Event()
            received: list[str] = []
            done: list[str] = []

            def on_chunk(text: str) -> None:
                received.append(text)
                if len(received) == 2:
                    token.cancel()

            # all three deltas arrive in a single transport chunk
            transport = _transport(_streaming([_sse("one", "two", "three")], stall), self.seen)
            with self.assertRaises(StreamCancelledError) as ctx:
                await stream_chat(
                    CONFIG, "s", "u", on_chunk=on_chunk, on_done=done.append, cancel=token, transport=transport
                )
            self.assertTrue(ctx.exception.cancelled)
            return received, done

        received, done = asyncio.run(scenario())
        self.assertEqual(received, ["one", "two"])
        self.assertEqual(done, [])

    def test_cancel_while_waiting_for_body(self) -> None:
        async def scenario() -> list[str]:
            token = CancelToken()
            received: list[str] = []
            transport = _transport(_streaming([_sse("first")], asyncio.Event()), self.seen)

            async def cancel_soon() -> None:
                await asyncio.sleep(0.05)
                token.cancel()

            canceller = asyncio.ensure_future(cancel_soon())
            with self.assertRaises(StreamCancelledError):
                await stream_chat(CONFIG, "s", "u", on_chunk=received.append, cancel=token, transport=transport)
            await canceller
            return received

        self.assertEqual(asyncio.run(scenario()), ["first"])

    def test_response_finishing_after_cancel_is_closed(self) -> None:
        async def scenario() -> httpx.Response:
            token = CancelToken()
            response = httpx.Response(200, content=_body([_sse("late")]))

            async def late_send() -> httpx.Response:
                # a send that completes even though it was cancelled
                try:
                    await asyncio.sleep(10)
                except asyncio.CancelledError:
                    return response
                return response

            async def cancel_soon() -> None:
                await asyncio.sleep(0.01)
                token.cancel()

            canceller = asyncio.ensure_future(cancel_soon())
            deadline = asyncio.get_running_loop().time() + 5
            with self.assertRaises(StreamCancelledError):
                await _race(late_send(), token, deadline)
            await canceller
            return response

        self.assertTrue(asyncio.run(scenario()).is_closed)

    def test_cancelled_before_start_never_connects(self) -> None:
        token = CancelToken()
        token.cancel()
        transport = _transport(_streaming([_sse("x")]), self.seen)
        with self.assertRaises(StreamCancelledError):
            asyncio.run(stream_chat(CONFIG, "s", "u", cancel=token, transport=transport))
        self.assertEqual(self.seen, [])

    def test_total_deadline(self) -> None:
        async def scenario() -> None:
            transport = _transport(_streaming([_sse("slow")], asyncio.Event()), self.seen)
            provider = OpenAICompatibleProvider(CONFIG, stream_timeout_s=0.1, transport=transport)
            done: list[str] = []
            async with GatClient(CONFIG, provider=provider) as client:
                with self.assertRaises(TransportError) as ctx:
                    await client.stream_chat("s", "u", on_done=done.append)
            self.assertEqual(str(ctx.exception), TIMEOUT_MESSAGE)
            self.assertEqual(done, [])

        asyncio.run(scenario())

    def test_error_status_on_stream(self) -> None:
        handler = lambda r: httpx.Response(401, json={"error": {"message": "bad key"}})
        with self.assertRaises(UpstreamStatusError) as ctx:
            asyncio.run(stream_chat(CONFIG, "s", "u", transport=_transport(handler, self.seen)))
        self.assertIn("reconfigure", str(ctx.exception))

    def test_stream_events_end_with_single_terminal_event(self) -> None:
        async def collect(handler: Callable[[httpx.Request], httpx.Response]) -> list[StreamEvent]:
            async with GatClient(CONFIG, transport=_transport(handler, self.seen)) as client:
                return [event async for event in client.stream_events("s", "u")]

        ok = asyncio.run(collect(_streaming([_sse("a", "b")])))
        self.assertEqual([e.type for e in ok], ["delta", "delta", "done"])
        self.assertEqual("".join(e.text for e in ok[:-1]), ok[-1].full_text)

        failed = asyncio.run(collect(lambda r: httpx.Response(503, text="down")))
        self.assertEqual([e.type for e in failed], ["error"])
        self.assertIsInstance(failed[0].error, UpstreamStatusError)


if __name__ == "__main__":
    unittest.main()
