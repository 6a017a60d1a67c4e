"""Key events and terminal byte-sequence decoding."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

KEY_UP = "UP"
KEY_DOWN = "DOWN"
KEY_LEFT = "LEFT"
KEY_RIGHT = "RIGHT"
KEY_HOME = "HOME"
KEY_END = "END"
KEY_ENTER = "ENTER"
KEY_ESCAPE = "ESC"
KEY_BACKSPACE = "BACKSPACE"
KEY_DELETE = "DELETE"
KEY_TAB = "TAB"

SPECIAL_KEYS = frozenset(
    {
        KEY_UP,
        KEY_DOWN,
        KEY_LEFT,
        KEY_RIGHT,
        KEY_HOME,
        KEY_END,
        KEY_ENTER,
        KEY_ESCAPE,
        KEY_BACKSPACE,
        KEY_DELETE,
        KEY_TAB,
    }
)


@dataclass(frozen=True)
class Key:
    """One key press: a special key name or a single printable character.

    ``ctrl`` is set for Ctrl+letter chords; ``name`` then holds the letter
    as typed, so Ctrl+T and Ctrl+t can be told apart where the terminal
    reports it.
    """

    name: str
    ctrl: bool = False

    @property
    def is_char(self) -> bool:
        return not self.ctrl and self.name not in SPECIAL_KEYS

    def is_ctrl(self, letter: str) -> bool:
        return self.ctrl and self.name.lower() == letter.lower()

    @property
    def is_quit(self) -> bool:
        return self.is_ctrl("c")


_ESCAPE_SEQUENCES = {
    "[A": KEY_UP,
    "[B": KEY_DOWN,
    "[C": KEY_RIGHT,
    "[D": KEY_LEFT,
    "[H": KEY_HOME,
    "[F": KEY_END,
    "OA": KEY_UP,
    "OB": KEY_DOWN,
    "OC": KEY_RIGHT,
    "OD": KEY_LEFT,
    "OH": KEY_HOME,
    "OF": KEY_END,
    "[1~": KEY_HOME,
    "[3~": KEY_DELETE,
    "[4~": KEY_END,
    "[7~": KEY_HOME,
    "[8~": KEY_END,
}


def parse_keys(data: str) -> List[Key]:
    """Decode everything one ``read()`` returned into key events.

    A lone ESC (nothing after it in the same read) is the Escape key;
    unknown escape sequences are dropped.
    """
    keys: List[Key] = []
    i = 0
    while i < len(data):
        ch = data[i]
        if ch == "\x1b":
            rest = data[i + 1 :]
            if not rest or rest[0] not in "[O":
                keys.append(Key(KEY_ESCAPE))
                i += 1
                continue
            # CSI/SS3: consume up to and including the final byte
            j = 1
            while j < len(rest) and not (rest[j].isalpha() or rest[j] == "~"):
                j += 1
            seq = rest[: j + 1]
            name = _ESCAPE_SEQUENCES.get(seq)
            if name is not None:
                keys.append(Key(name))
            i += 1 + len(seq)
            continue
        if ch in ("\r", "\n"):
            keys.append(Key(KEY_ENTER))
        elif ch in ("\x7f", "\x08"):
            keys.append(Key(KEY_BACKSPACE))
        elif ch == "\t":
            keys.append(Key(KEY_TAB))
        elif "\x01" <= ch <= "\x1a":
            keys.append(Key(chr(ord(ch) + ord("a") - 1), ctrl=True))
        elif ch.isprintable():
            keys.append(Key(ch))
        i += 1
    return keys
