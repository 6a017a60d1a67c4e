"""Streaming chat completions: SSE parsing and the producer task.

The producer puts exactly one of these on its queue per logical event:

- a content fragment (plain text);
- ``STREAM_DONE`` once the stream ends;
- ``"ERROR: <message>"`` if the request fails.

The dashboard drains the queue without blocking once per tick.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from dnet_tui.api.client import ApiClient
from dnet_tui.api.errors import ApiConnectionError, ApiError, CONNECTION_HINT
from dnet_tui.api.models import ChatRequest
from dnet_tui.utils.logger import logger

STREAM_DONE = "DONE"
STREAM_ERROR_PREFIX = "ERROR:"
SSE_DATA_PREFIX = "data: "
SSE_DONE_SENTINEL = "[DONE]"


@dataclass
class StreamEvent:
    content: Optional[str] = None
    done: bool = False


@dataclass
class SSELineBuffer:
    """Incremental parser for an OpenAI-style ``text/event-stream`` body.

    Bytes are buffered until a newline arrives, so a frame split across
    network reads is parsed exactly once, when complete.
    """

    _buf: bytearray = field(default_factory=bytearray)

    def feed(self, chunk: bytes) -> Iterator[StreamEvent]:
        self._buf.extend(chunk)
        while True:
            idx = self._buf.find(b"\n")
            if idx < 0:
                return
            raw = bytes(self._buf[:idx])
            del self._buf[: idx + 1]
            event = self.parse_line(raw.decode("utf-8", errors="replace"))
            if event is not None:
                yield event
                if event.done:
                    return

    @staticmethod
    def parse_line(line: str) -> Optional[StreamEvent]:
        line = line.rstrip("\r")
        if not line.strip() or not line.startswith(SSE_DATA_PREFIX):
            return None
        payload = line[len(SSE_DATA_PREFIX) :]
        if payload.strip() == SSE_DONE_SENTINEL:
            return StreamEvent(done=True)
        try:
            chunk = json.loads(payload)
            choice = chunk["choices"][0]
            delta = choice.get("delta") or {}
            content = delta.get("content")
            done = choice.get("finish_reason") is not None
        except (ValueError, KeyError, IndexError, TypeError, AttributeError):
            logger.debug("Skipping unparseable SSE frame: %r", payload[:120])
            return None
        if content is not None and not isinstance(content, str):
            logger.debug("Skipping SSE frame with non-text content: %r", payload[:120])
            return None
        if content is None and not done:
            return None
        return StreamEvent(content=content or None, done=done)


async def stream_chat_response(
    api: ApiClient, request: ChatRequest, queue: asyncio.Queue[str]
) -> None:
    """Producer: forward every fragment of one completion onto ``queue``."""
    parser = SSELineBuffer()
    try:
        async for chunk in api.stream_chat(request):
            for event in parser.feed(chunk):
                if event.content:
                    queue.put_nowait(event.content)
                if event.done:
                    queue.put_nowait(STREAM_DONE)
                    return
    except ApiConnectionError as e:
        logger.warning("Chat stream connection failed: %s", e)
        queue.put_nowait(f"{STREAM_ERROR_PREFIX} {CONNECTION_HINT}")
        return
    except ApiError as e:
        logger.warning("Chat stream failed: %s", e)
        queue.put_nowait(f"{STREAM_ERROR_PREFIX} {e.message}")
        return
    except Exception as e:
        logger.exception("Chat stream aborted: %s", e)
        queue.put_nowait(f"{STREAM_ERROR_PREFIX} {e}")
        return
    queue.put_nowait(STREAM_DONE)


class ChatStream:
    """Handle on one in-flight completion: its task and its queue.

    The owner must call :meth:`cancel` when the stream is no longer wanted;
    dropping the handle alone does not stop the request.
    """

    def __init__(self, api: ApiClient, request: ChatRequest):
        self.queue: asyncio.Queue[str] = asyncio.Queue()
        self.task = asyncio.create_task(
            stream_chat_response(api, request, self.queue),
            name=f"chat-stream-{request.model}",
        )

    def drain(self) -> List[str]:
        """Everything queued so far, in send order, without waiting."""
        items: List[str] = []
        while True:
            try:
                items.append(self.queue.get_nowait())
            except asyncio.QueueEmpty:
                return items

    def cancel(self) -> None:
        if not self.task.done():
            logger.debug("Cancelling chat stream %s", self.task.get_name())
            self.task.cancel()

    @property
    def finished(self) -> bool:
        return self.task.done()
