"""Newline-delimited JSON encoding and the channel events are written to."""

import asyncio
from typing import AsyncIterator

from pydantic import BaseModel

from ..models import is_terminal

_END = object()


class StreamClosedError(Exception):
    """The stream no longer accepts events (finished, or the client left)."""


def encode_event(event: BaseModel) -> str:
    """Serialize one event as a single JSON line."""
    return event.model_dump_json(by_alias=True, exclude_none=True) + "\n"


class EventStream:
    """Bounded channel between the pipeline task and the response body.

    ``emit`` waits while ``max_buffered`` lines are still unread, so the
    pipeline never runs ahead of a slow client. ``lines`` yields encoded
    lines until the producer calls ``close``. A terminal event (``complete``
    or a fatal ``error``) closes the stream after it is written.
    """

    def __init__(self, max_buffered: int = 1):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_buffered)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, event: BaseModel) -> None:
        if self._closed:
            raise StreamClosedError("event stream is closed")
        await self._queue.put(encode_event(event))
        if is_terminal(event):
            await self.close()

    async def close(self) -> None:
        """Finish the stream once the buffered lines are read."""
        if self._closed:
            return
        self._closed = True
        await self._queue.put(_END)

    def abort(self) -> None:
        """Stop accepting events without waiting for a reader."""
        self._closed = True

    async def lines(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            yield item
