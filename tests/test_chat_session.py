"""Tests: ChatSession history, drain semantics, knobs and scrolling."""

import pytest

from dnet_tui.chat.session import (
    CLEARED_MESSAGE,
    MAX_TOKENS_CEILING,
    MAX_TOKENS_FLOOR,
    WELCOME_MESSAGE,
    ChatSession,
    clean_model_tokens,
    split_think_tags,
)
from tests.fakes import FakeChatStream

pytestmark = [pytest.mark.chat]


def _generating(session: ChatSession, *items: str) -> FakeChatStream:
    session.input = "hello"
    session.cursor = 5
    assert session.submit()
    session.pending_send = False
    stream = FakeChatStream(list(items))
    session.stream = stream
    return stream


def test_new_session_has_welcome_only():
    session = ChatSession("m", 2000)
    assert [m.content for m in session.messages] == [WELCOME_MESSAGE]
    assert session.api_messages() == []


def test_submit_ignores_blank_input_and_busy_session():
    session = ChatSession("m", 2000)
    session.input = "   "
    assert not session.submit()
    _generating(session)
    session.input = "again"
    assert not session.submit()
    assert [m.role for m in session.api_messages()] == ["user"]


def test_submit_moves_input_into_history():
    session = ChatSession("m", 2000)
    session.input = "  what is dnet?  "
    assert session.submit()
    assert session.input == "" and session.cursor == 0
    assert session.is_generating and session.pending_send
    assert session.messages[-1].role == "user"
    assert session.messages[-1].content == "what is dnet?"


def test_drain_accumulates_then_folds_on_done():
    session = ChatSession("m", 2000)
    stream = _generating(session, "Hel", "lo<|im_end|>")
    session.drain()
    assert session.current_response == "Hello"
    assert session.is_generating

    stream.push(" world", "DONE")
    session.drain()
    assert not session.is_generating
    assert session.current_response == ""
    assert session.messages[-1].role == "assistant"
    assert session.messages[-1].content == "Hello world"
    assert session.stream is None and stream.cancelled


def test_drain_error_sets_message_and_keeps_partial():
    session = ChatSession("m", 2000)
    _generating(session, "partial", "ERROR: Cannot connect")
    session.drain()
    assert session.error == "Cannot connect"
    assert not session.is_generating
    assert session.messages[-1].content == "partial"


def test_stop_without_text_adds_no_empty_message():
    session = ChatSession("m", 2000)
    _generating(session)
    count = len(session.messages)
    session.finish_response()
    assert len(session.messages) == count
    assert not session.is_generating


def test_clear_resets_history_and_stream():
    session = ChatSession("m", 2000)
    stream = _generating(session, "abc")
    session.drain()
    session.clear()
    assert [m.content for m in session.messages] == [CLEARED_MESSAGE]
    assert not session.is_generating and session.current_response == ""
    assert stream.cancelled


def test_max_tokens_bounds():
    session = ChatSession("m", 9800)
    session.raise_max_tokens()
    assert session.max_tokens == MAX_TOKENS_CEILING
    session.raise_max_tokens()
    assert session.max_tokens == MAX_TOKENS_CEILING

    session = ChatSession("m", 300)
    session.lower_max_tokens()
    assert session.max_tokens == MAX_TOKENS_FLOOR


def test_scroll_unlocks_and_relocks():
    session = ChatSession("m", 2000)
    session.set_scroll_max(10)
    assert session.scroll_cur == 10

    session.scroll_up()
    session.scroll_up()
    assert session.scroll_cur == 8 and not session.scroll_locked

    # new content while unlocked does not move the viewport
    session.set_scroll_max(12)
    assert session.scroll_cur == 8

    for _ in range(4):
        session.scroll_down()
    assert session.scroll_cur == 12 and session.scroll_locked
    session.set_scroll_max(15)
    assert session.scroll_cur == 15


def test_input_line_editing():
    session = ChatSession("m", 2000)
    for ch in "helo":
        session.insert(ch)
    session.move_cursor(-1)
    session.insert("l")
    assert session.input == "hello" and session.cursor == 4
    session.cursor_home()
    session.delete()
    assert session.input == "ello"
    session.cursor_end()
    session.backspace()
    assert session.input == "ell"
    session.move_cursor(10)
    assert session.cursor == 3


def test_split_think_tags():
    assert split_think_tags("plain") == ("plain", None, None)
    assert split_think_tags("<think>hmm</think>Answer") == (None, "hmm", "Answer")
    assert split_think_tags("a<think>still going") == ("a", "still going", None)
    assert split_think_tags("") == (None, None, None)


def test_clean_model_tokens():
    assert clean_model_tokens("<|im_start|>hi\ufffd</s>") == "hi"
