"""Server-Sent Events over Firestore live queries.

Each stream opens one ``on_snapshot`` watch. The watch callback runs on a
Firestore thread, so snapshots are handed to the event loop through
``call_soon_threadsafe``. The watch is always unsubscribed when the stream
ends, whether the client disconnected or something failed.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Callable, Optional

from fastapi import Request
from fastapi.responses import StreamingResponse

from .settings import settings

logger = logging.getLogger(__name__)


def sse_event(payload: Any, event: Optional[str] = None) -> str:
    prefix = f"event: {event}\n" if event else ""
    return f"{prefix}data: {json.dumps(payload, default=str)}\n\n"


async def snapshot_events(
    query,
    render: Callable[[list], Any],
    *,
    request: Optional[Request] = None,
    heartbeat_s: Optional[float] = None,
    event: str = "snapshot",
) -> AsyncIterator[str]:
    """Yield one SSE frame per snapshot; ``render`` turns the docs into the payload."""
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()
    heartbeat = float(heartbeat_s if heartbeat_s is not None else settings.STREAM_HEARTBEAT_SECONDS)

    def on_snapshot(docs, changes, read_time):
        loop.call_soon_threadsafe(queue.put_nowait, list(docs))

    watch = query.on_snapshot(on_snapshot)
    try:
        while True:
            if request is not None and await request.is_disconnected():
                break
            try:
                item = await asyncio.wait_for(queue.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                yield ": ping\n\n"
                continue
            try:
                payload = render(item)
            except Exception as e:
                logger.warning("Live query render failed: %s", e)
                yield sse_event({"detail": "Live updates failed, please try again"}, event="error")
                break
            yield sse_event(payload, event=event)
    finally:
        try:
            watch.unsubscribe()
        except Exception as e:
            logger.warning("Failed to unsubscribe live query: %s", e)


def stream_response(events: AsyncIterator[str]) -> StreamingResponse:
    return StreamingResponse(
        events,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
