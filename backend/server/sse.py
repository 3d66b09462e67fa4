"""
Server-Sent Events (SSE) infrastructure.

Chart runs stream their progress and final result over an SSEChannel;
the endpoint drains the channel into a text/event-stream response.
"""

from __future__ import annotations

import asyncio
import itertools
import json
from typing import Any, AsyncIterator, Optional

from fastapi.responses import StreamingResponse
from pydantic import BaseModel

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class SSEEvent(BaseModel):
    """A single SSE message."""
    event: str
    data: Any = None
    id: Optional[str] = None
    retry: Optional[int] = None           # client reconnect delay, ms

    def format(self) -> str:
        """Serialize to SSE wire format."""
        lines: list[str] = []
        if self.id:
            lines.append(f"id: {self.id}")
        if self.retry is not None:
            lines.append(f"retry: {self.retry}")
        lines.append(f"event: {self.event}")

        if self.data is None:
            lines.append("data: {}")
        else:
            payload = self.data if isinstance(self.data, str) else json.dumps(self.data, default=str)
            lines.extend(f"data: {line}" for line in payload.split("\n"))

        return "\n".join(lines) + "\n\n"


class SSEChannel:
    """
    Async queue between one producing run and one consuming response.

    Event ids are ``<prefix>:<n>`` with n counting up from 1, so a client can
    tell whether it missed anything. Emitting after ``close`` is a no-op.

    Usage:
        channel = SSEChannel(prefix=run_id)

        # Producer (in background task):
        await channel.emit("progress", {"progress": 40})
        await channel.close()

        # Consumer (in SSE endpoint):
        return sse_response(channel)
    """

    def __init__(self, prefix: str = "evt") -> None:
        self._queue: asyncio.Queue[Optional[SSEEvent]] = asyncio.Queue()
        self._closed = False
        self._prefix = prefix
        self._seq = itertools.count(1)

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, event: str, data: Any = None) -> bool:
        """Queue an event; False when the channel is already closed."""
        if self._closed:
            return False
        await self._queue.put(SSEEvent(event=event, data=data, id=f"{self._prefix}:{next(self._seq)}"))
        return True

    async def close(self) -> None:
        """Signal the consumer that no more events will arrive."""
        if self._closed:
            return
        self._closed = True
        await self._queue.put(None)  # sentinel

    async def __aiter__(self) -> AsyncIterator[str]:
        """Yield formatted SSE strings until the channel is closed."""
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event.format()


def sse_response(events: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(events, media_type="text/event-stream", headers=SSE_HEADERS)


# ---------------------------------------------------------------------------
# Standard event types (constants for consistency)
# ---------------------------------------------------------------------------

EVT_RUN_STARTED = "run_started"
EVT_PROGRESS = "progress"
EVT_RESULT = "result"
EVT_SUPERSEDED = "superseded"
EVT_WARNING = "warning"
EVT_ERROR = "error"
