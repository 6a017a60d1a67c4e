import pytest

from dnet_tui.keys import (
    KEY_BACKSPACE,
    KEY_DELETE,
    KEY_DOWN,
    KEY_ENTER,
    KEY_ESCAPE,
    KEY_HOME,
    KEY_UP,
    Key,
    parse_keys,
)

pytestmark = pytest.mark.core


def _names(data):
    return [k.name for k in parse_keys(data)]


def test_arrow_and_editing_sequences():
    assert _names("\x1b[A\x1b[B") == [KEY_UP, KEY_DOWN]
    assert _names("\x1bOH") == [KEY_HOME]
    assert _names("\x1b[3~") == [KEY_DELETE]


def test_lone_escape_is_escape_key():
    assert _names("\x1b") == [KEY_ESCAPE]
    assert _names("\x1bx") == [KEY_ESCAPE, "x"]


def test_text_and_control_bytes():
    assert _names("hi\r") == ["h", "i", KEY_ENTER]
    assert _names("\x7f") == [KEY_BACKSPACE]


def test_ctrl_chords():
    (key,) = parse_keys("\x03")
    assert key.ctrl and key.is_quit
    (key,) = parse_keys("\x14")
    assert key.is_ctrl("t") and not key.is_char
    assert not Key("c").is_quit


def test_unknown_escape_sequence_dropped():
    assert _names("\x1b[99Za") == ["a"]


def test_is_char():
    assert Key("s").is_char
    assert not Key(KEY_UP).is_char
