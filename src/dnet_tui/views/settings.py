"""Settings editor over the working copy of the config."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import ValidationError

from dnet_tui.keys import KEY_BACKSPACE, KEY_DOWN, KEY_ENTER, KEY_ESCAPE, KEY_UP, Key
from dnet_tui.utils.logger import logger

if TYPE_CHECKING:
    from dnet_tui.app import App

# (config attribute, label)
SETTINGS_FIELDS: list[tuple[str, str]] = [
    ("api_host", "Host"),
    ("api_port", "Port"),
    ("max_tokens", "Max Tokens"),
    ("temperature", "Temperature"),
    ("devices_refresh_interval", "Devices Refresh (s)"),
    ("kv_bits", "KV Bits"),
    ("max_batch_exp", "Max Batch Exp"),
    ("seq_len", "Seq Len"),
]


@dataclass
class SettingsView:
    selected: int = 0
    editing: bool = False
    buffer: str = ""
    status: str = ""
    status_is_error: bool = False

    @property
    def field(self) -> tuple[str, str]:
        return SETTINGS_FIELDS[self.selected]

    def set_status(self, message: str, error: bool = False) -> None:
        self.status = message
        self.status_is_error = error


def _first_error(e: ValueError) -> str:
    if isinstance(e, ValidationError) and e.errors():
        return e.errors()[0]["msg"]
    return str(e)


def handle_input(app: "App", view: SettingsView, key: Key) -> None:
    if key.is_quit:
        app.quit()
        return
    if view.editing:
        _handle_editing(app, view, key)
        return

    if key.name == KEY_ESCAPE:
        app.to_menu()
    elif key.name == KEY_UP:
        view.selected = (view.selected - 1) % len(SETTINGS_FIELDS)
    elif key.name == KEY_DOWN:
        view.selected = (view.selected + 1) % len(SETTINGS_FIELDS)
    elif key.name == KEY_ENTER:
        name, _ = view.field
        view.editing = True
        view.buffer = app.temp_config.read_setting(name)
        view.set_status("")
    elif key.is_char and key.name.lower() == "s":
        save(app, view)


def _handle_editing(app: "App", view: SettingsView, key: Key) -> None:
    if key.name == KEY_ESCAPE:
        view.editing = False
        view.buffer = ""
        view.set_status("")
    elif key.name == KEY_ENTER:
        apply(app, view)
    elif key.name == KEY_BACKSPACE:
        view.buffer = view.buffer[:-1]
    elif key.is_char:
        view.buffer += key.name


def apply(app: "App", view: SettingsView) -> bool:
    """Validate the edit buffer into ``temp_config``; stay in edit mode on error."""
    name, label = view.field
    try:
        app.temp_config.write_setting(name, view.buffer)
    except ValueError as e:
        view.set_status(f"[ERROR] Invalid {label}: {_first_error(e)}", error=True)
        return False
    view.editing = False
    view.buffer = ""
    view.set_status(f"{label} updated (press 's' to save)")
    return True


def save(app: "App", view: SettingsView) -> None:
    try:
        path = app.temp_config.save()
    except OSError as e:
        logger.exception("Failed to save config: %s", e)
        view.set_status(f"[ERROR] Failed to save config: {e}", error=True)
        return
    app.commit_config(app.temp_config)
    logger.info("Configuration saved to %s", path)
    view.set_status(f"Configuration saved to {path}")


async def tick(app: "App", view: SettingsView) -> None:
    return None
