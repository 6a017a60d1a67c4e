"""Chat history, the in-progress reply and scroll state."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from dnet_tui.api.client import ApiClient
from dnet_tui.api.models import ApiMessage, ChatRequest, Role
from dnet_tui.utils.logger import logger

from .stream import STREAM_DONE, STREAM_ERROR_PREFIX, ChatStream

WELCOME_MESSAGE = "Welcome to dnet chat! Type your message and press Enter to send."
CLEARED_MESSAGE = "Chat cleared. Start a new conversation!"

MAX_TOKENS_STEP = 500
MAX_TOKENS_CEILING = 10_000
MAX_TOKENS_FLOOR = 100

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"

_CONTROL_TOKENS = re.compile(
    "|".join(
        re.escape(tok)
        for tok in (
            "<|im_start|>",
            "<|im_end|>",
            "<|endoftext|>",
            "</s>",
            "<s>",
            "[INST]",
            "[/INST]",
            "\ufffd",
        )
    )
)


def clean_model_tokens(text: str) -> str:
    """Strip chat-template control tokens that leak into streamed output."""
    return _CONTROL_TOKENS.sub("", text)


def split_think_tags(text: str) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Split ``text`` around the first ``<think>...</think>`` block.

    Returns ``(before, thinking, after)`` with empty parts as None. An
    unterminated ``<think>`` makes everything after it thinking, which is
    what a reply still being generated looks like.
    """
    start = text.find(THINK_OPEN)
    if start < 0:
        return (text or None, None, None)
    before = text[:start] or None
    rest = text[start + len(THINK_OPEN) :]
    end = rest.find(THINK_CLOSE)
    if end < 0:
        return (before, rest or None, None)
    thinking = rest[:end] or None
    after = rest[end + len(THINK_CLOSE) :] or None
    return (before, thinking, after)


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    content: str
    timestamp: str = field(default_factory=lambda: datetime.now().strftime("%H:%M"))

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls("system", content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls("user", content)

    @classmethod
    def assistant(cls, content: str) -> "ChatMessage":
        return cls("assistant", content)


class ChatSession:
    """State of one conversation with a loaded model.

    ``current_response`` accumulates fragments of the reply being generated;
    it is folded into a message (and cleared) when the stream finishes or is
    stopped, so no partial text is ever shown twice.
    """

    def __init__(self, model: str, max_tokens: int):
        self.model = model
        self.max_tokens = max_tokens
        self.messages: List[ChatMessage] = [ChatMessage.system(WELCOME_MESSAGE)]
        self.input = ""
        self.cursor = 0
        self.is_generating = False
        self.current_response = ""
        self.scroll_cur = 0
        self.scroll_max = 0
        self.scroll_locked = True
        self.stream: Optional[ChatStream] = None
        self.pending_send = False
        self.error: Optional[str] = None

    # --- conversation -----------------------------------------------------

    def api_messages(self) -> List[ApiMessage]:
        return [
            ApiMessage(role=m.role, content=m.content)
            for m in self.messages
            if m.role != "system"
        ]

    def submit(self) -> bool:
        """Move the input line into history and mark it for sending.

        The request itself goes out on the next tick, see :meth:`start_pending`.
        Returns False when there is nothing to send or a reply is in flight.
        """
        text = self.input.strip()
        if not text or self.is_generating:
            return False
        self.messages.append(ChatMessage.user(text))
        self.input = ""
        self.cursor = 0
        self.is_generating = True
        self.scroll_locked = True
        self.current_response = ""
        self.pending_send = True
        return True

    def start_pending(self, api: ApiClient, temperature: float) -> None:
        """Open the completion stream for a message queued by :meth:`submit`."""
        if not self.pending_send:
            return
        self.pending_send = False
        request = ChatRequest(
            model=self.model,
            messages=self.api_messages(),
            max_tokens=self.max_tokens,
            temperature=temperature,
            stream=True,
        )
        logger.info(
            "Sending chat message (%d turns, max_tokens=%d)",
            len(request.messages),
            self.max_tokens,
        )
        self.stream = ChatStream(api, request)

    def drain(self) -> None:
        """Apply everything the producer has queued since the last tick."""
        if self.stream is None:
            return
        for item in self.stream.drain():
            if item == STREAM_DONE:
                self.finish_response()
                return
            if item.startswith(STREAM_ERROR_PREFIX):
                self.error = item[len(STREAM_ERROR_PREFIX) :].strip()
                logger.error("Chat stream error: %s", self.error)
                self.finish_response()
                return
            fragment = clean_model_tokens(item)
            if fragment:
                self.current_response += fragment
                if self.scroll_locked:
                    self.scroll_cur = self.scroll_max

    def finish_response(self) -> None:
        """Fold the partial reply into history and release the stream."""
        if self.current_response:
            self.messages.append(ChatMessage.assistant(self.current_response))
        self.current_response = ""
        self.is_generating = False
        self.pending_send = False
        self.stop_stream()

    def stop_stream(self) -> None:
        if self.stream is not None:
            self.stream.cancel()
            self.stream = None

    def clear(self) -> None:
        self.stop_stream()
        self.is_generating = False
        self.pending_send = False
        self.current_response = ""
        self.messages = [ChatMessage.system(CLEARED_MESSAGE)]
        self.scroll_cur = 0
        self.scroll_max = 0
        self.scroll_locked = True

    # --- generation knobs --------------------------------------------------

    def raise_max_tokens(self) -> None:
        self.max_tokens = min(self.max_tokens + MAX_TOKENS_STEP, MAX_TOKENS_CEILING)

    def lower_max_tokens(self) -> None:
        self.max_tokens = max(self.max_tokens - MAX_TOKENS_STEP, MAX_TOKENS_FLOOR)

    # --- scrolling ----------------------------------------------------------

    def scroll_up(self) -> None:
        self.scroll_locked = False
        self.scroll_cur = max(self.scroll_cur - 1, 0)

    def scroll_down(self) -> None:
        self.scroll_cur = min(self.scroll_cur + 1, self.scroll_max)
        if self.scroll_cur >= self.scroll_max:
            self.scroll_locked = True

    def set_scroll_max(self, value: int) -> None:
        """Called by the renderer once it knows the wrapped history height."""
        self.scroll_max = max(value, 0)
        if self.scroll_locked or self.scroll_cur > self.scroll_max:
            self.scroll_cur = self.scroll_max

    # --- input line ---------------------------------------------------------

    def insert(self, ch: str) -> None:
        self.input = self.input[: self.cursor] + ch + self.input[self.cursor :]
        self.cursor += len(ch)

    def backspace(self) -> None:
        if self.cursor > 0:
            self.input = self.input[: self.cursor - 1] + self.input[self.cursor :]
            self.cursor -= 1

    def delete(self) -> None:
        self.input = self.input[: self.cursor] + self.input[self.cursor + 1 :]

    def move_cursor(self, delta: int) -> None:
        self.cursor = min(max(self.cursor + delta, 0), len(self.input))

    def cursor_home(self) -> None:
        self.cursor = 0

    def cursor_end(self) -> None:
        self.cursor = len(self.input)
