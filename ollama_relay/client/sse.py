"""
Server-sent event parsing over an httpx streaming response.
"""

from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

import httpx


@dataclass
class ServerSentEvent:
    data: str = ""
    event: str = "message"
    id: Optional[str] = None
    retry: Optional[int] = None


async def aiter_sse(response: httpx.Response) -> AsyncIterator[ServerSentEvent]:
    """
    Yield events from a ``text/event-stream`` response.

    Events are dispatched on a blank line; multiple ``data:`` lines are
    joined with newlines, comment lines (leading ':') are ignored. A trailing
    event without its terminating blank line is still dispatched when the
    connection closes.
    """
    data_lines: List[str] = []
    event_type: Optional[str] = None
    last_id: Optional[str] = None
    retry: Optional[int] = None

    async for line in response.aiter_lines():
        line = line.rstrip("\r")

        if not line:
            if data_lines:
                yield ServerSentEvent(
                    data="\n".join(data_lines),
                    event=event_type or "message",
                    id=last_id,
                    retry=retry,
                )
            data_lines = []
            event_type = None
            retry = None
            continue

        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "data":
            data_lines.append(value)
        elif field == "event":
            event_type = value
        elif field == "id":
            if "\0" not in value:
                last_id = value
        elif field == "retry":
            try:
                retry = int(value)
            except ValueError:
                pass

    if data_lines:
        yield ServerSentEvent(
            data="\n".join(data_lines),
            event=event_type or "message",
            id=last_id,
            retry=retry,
        )
