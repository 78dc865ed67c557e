"""Cooperative cancellation for in-flight chat requests."""

from __future__ import annotations

import asyncio


class CancelToken:
    """Handed to a request before it starts; ``cancel()`` aborts the transport.

    A token may be cancelled from any callback running on the same event loop,
    including ``on_chunk``. Cancelling twice is harmless.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()
