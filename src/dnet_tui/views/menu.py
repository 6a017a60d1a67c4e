"""Main menu and the background health/topology polling that feeds it."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from dnet_tui.jobs import BackgroundJob
from dnet_tui.keys import KEY_DOWN, KEY_ENTER, KEY_ESCAPE, KEY_UP, Key
from dnet_tui.utils.logger import logger

from . import chat, developer, devices, model, settings, topology

if TYPE_CHECKING:
    from dnet_tui.app import App

HEALTH_CHECK_INTERVAL = 1.0
TOPOLOGY_CHECK_INTERVAL = 3.0


class MenuItem(Enum):
    CHAT = "Chat"
    VIEW_DEVICES = "View Devices"
    VIEW_TOPOLOGY = "View Topology"
    LOAD_MODEL = "Load Model"
    UNLOAD_MODEL = "Unload Model"
    SETTINGS = "Settings"
    DEVELOPER = "Developer"
    EXIT = "Exit"

    @property
    def label(self) -> str:
        return self.value


MENU_ITEMS = list(MenuItem)


@dataclass
class MenuView:
    selected: int = 0


def is_disabled(item: MenuItem, app: "App") -> bool:
    """Whether selecting ``item`` is currently a no-op."""
    if item in (MenuItem.CHAT, MenuItem.UNLOAD_MODEL):
        return not app.model_loaded
    if item is MenuItem.VIEW_TOPOLOGY:
        return not app.topology_loaded
    if item is MenuItem.LOAD_MODEL:
        return not app.is_api_online or app.model_loaded
    return False


def describe(item: MenuItem, app: "App") -> str:
    if item is MenuItem.CHAT:
        return "Chat with loaded model" if app.model_loaded else "Chat (no model loaded)"
    if item is MenuItem.VIEW_DEVICES:
        return "View discovered devices"
    if item is MenuItem.VIEW_TOPOLOGY:
        if app.topology_loaded:
            return "View dnet topology"
        return "View topology (no topology available)"
    if item is MenuItem.LOAD_MODEL:
        if not app.is_api_online:
            return "Load a model (API offline)"
        if app.model_loaded:
            return "Load a model (model already loaded)"
        return "Load a model"
    if item is MenuItem.UNLOAD_MODEL:
        return "Unload model" if app.model_loaded else "Unload model (no model loaded)"
    if item is MenuItem.SETTINGS:
        return "Edit configuration"
    if item is MenuItem.DEVELOPER:
        return "Advanced developer tools"
    return "Quit application"


def handle_input(app: "App", view: MenuView, key: Key) -> None:
    if key.name == KEY_ESCAPE or key.is_quit:
        app.quit()
    elif key.name == KEY_UP:
        view.selected = max(view.selected - 1, 0)
    elif key.name == KEY_DOWN:
        view.selected = min(view.selected + 1, len(MENU_ITEMS) - 1)
    elif key.name == KEY_ENTER:
        select(app, MENU_ITEMS[view.selected])


def select(app: "App", item: MenuItem) -> None:
    if is_disabled(item, app):
        return

    if item is MenuItem.CHAT:
        app.open_chat()
        app.set_view(chat.ChatView())
    elif item is MenuItem.VIEW_DEVICES:
        app.set_view(devices.DevicesView())
    elif item is MenuItem.VIEW_TOPOLOGY:
        app.set_view(topology.TopologyView())
    elif item is MenuItem.LOAD_MODEL:
        app.set_view(model.ModelLoadView())
    elif item is MenuItem.UNLOAD_MODEL:
        app.set_view(model.ModelUnloadView())
    elif item is MenuItem.SETTINGS:
        app.temp_config = app.config.model_copy()
        app.set_view(settings.SettingsView())
    elif item is MenuItem.DEVELOPER:
        app.set_view(developer.DeveloperView())
    else:
        app.quit()


async def tick(app: "App", view: MenuView) -> None:
    """Reconcile API health and the known topology on independent timers."""
    poll_health(app)
    poll_topology(app)


def poll_health(app: "App") -> None:
    job = app.health_job
    if job is not None:
        outcome = job.poll()
        if outcome is None:
            return
        app.health_job = None
        online = bool(outcome.value) if outcome.ok else False
        if online != app.is_api_online:
            logger.info("API server is %s", "online" if online else "offline")
        app.is_api_online = online
        return

    now = app.clock()
    if (
        app.last_health_check is not None
        and now - app.last_health_check < HEALTH_CHECK_INTERVAL
    ):
        return
    app.last_health_check = now
    app.health_job = BackgroundJob(app.api.is_healthy(), name="health")


def poll_topology(app: "App") -> None:
    job = app.topology_job
    if job is not None:
        outcome = job.poll()
        if outcome is None:
            return
        app.topology_job = None
        # an unreachable server and "no topology" both mean nothing to show
        app.topology = outcome.value if outcome.ok else None
        return

    now = app.clock()
    if (
        app.last_topology_check is not None
        and now - app.last_topology_check < TOPOLOGY_CHECK_INTERVAL
    ):
        return
    app.last_topology_check = now
    app.topology_job = BackgroundJob(app.api.get_topology(), name="topology")
