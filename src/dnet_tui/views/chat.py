"""Chat view: key bindings over the app's ChatSession and stream draining."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

from dnet_tui.keys import (
    KEY_BACKSPACE,
    KEY_DELETE,
    KEY_DOWN,
    KEY_END,
    KEY_ENTER,
    KEY_ESCAPE,
    KEY_HOME,
    KEY_LEFT,
    KEY_RIGHT,
    KEY_UP,
    Key,
)

if TYPE_CHECKING:
    from dnet_tui.app import App


@dataclass
class ChatActive:
    pass


@dataclass
class ChatError:
    message: str


@dataclass
class ChatView:
    state: Union[ChatActive, ChatError] = field(default_factory=ChatActive)


def handle_input(app: "App", view: ChatView, key: Key) -> None:
    session = app.chat
    if isinstance(view.state, ChatError) or session is None:
        if key.is_quit:
            app.quit()
        elif key.name == KEY_ESCAPE:
            app.to_menu()
        return

    if key.is_quit:
        if session.is_generating:
            session.finish_response()
        else:
            app.quit()
        return
    if key.name == KEY_ESCAPE:
        app.to_menu()
        return

    if key.is_ctrl("l"):
        session.clear()
    elif key.is_ctrl("t"):
        session.raise_max_tokens()
    elif key.is_ctrl("r"):
        session.lower_max_tokens()
    elif key.name == KEY_UP:
        session.scroll_up()
    elif key.name == KEY_DOWN:
        session.scroll_down()
    elif session.is_generating:
        # input line is frozen while a reply streams in
        return
    elif key.name == KEY_ENTER:
        session.submit()
    elif key.name == KEY_BACKSPACE:
        session.backspace()
    elif key.name == KEY_DELETE:
        session.delete()
    elif key.name == KEY_LEFT:
        session.move_cursor(-1)
    elif key.name == KEY_RIGHT:
        session.move_cursor(1)
    elif key.name == KEY_HOME:
        session.cursor_home()
    elif key.name == KEY_END:
        session.cursor_end()
    elif key.is_char:
        session.insert(key.name)


async def tick(app: "App", view: ChatView) -> None:
    session = app.chat
    if session is None or not isinstance(view.state, ChatActive):
        return
    session.start_pending(app.api, app.config.temperature)
    session.drain()
    if session.error is not None:
        view.state = ChatError(session.error)
        session.error = None
