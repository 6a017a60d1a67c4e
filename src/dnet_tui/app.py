"""Application state and the input/tick dispatch over the active view."""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from dnet_tui.api.client import ApiClient
from dnet_tui.api.models import TopologyInfo
from dnet_tui.chat.session import ChatSession
from dnet_tui.config import Config
from dnet_tui.jobs import BackgroundJob
from dnet_tui.keys import Key
from dnet_tui.utils.logger import logger
from dnet_tui.views import (
    AppView,
    ChatView,
    DeveloperView,
    DevicesView,
    MenuView,
    ModelLoadView,
    ModelUnloadView,
    SettingsView,
    TopologyView,
)
from dnet_tui.views import chat, developer, devices, menu, model, settings, topology

InputHandler = Callable[[Any, Any, Key], None]
TickHandler = Callable[[Any, Any], Awaitable[None]]

DISPATCH: Dict[type, Tuple[InputHandler, TickHandler]] = {
    MenuView: (menu.handle_input, menu.tick),
    ChatView: (chat.handle_input, chat.tick),
    TopologyView: (topology.handle_input, topology.tick),
    ModelLoadView: (model.handle_load_input, model.tick_load),
    ModelUnloadView: (model.handle_unload_input, model.tick_unload),
    DevicesView: (devices.handle_input, devices.tick),
    SettingsView: (settings.handle_input, settings.tick),
    DeveloperView: (developer.handle_input, developer.tick),
}


class App:
    """Everything the dashboard keeps across view changes.

    Views hold only their own ephemeral state; the chat session, known
    topology, API health and the config live here so that, e.g., chat
    history survives a trip through Settings.
    """

    def __init__(
        self,
        config: Config,
        api: Optional[ApiClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.temp_config = config.model_copy()
        self.api = api or ApiClient.from_config(config)
        self.clock = clock
        self.running = True

        self.view: AppView = MenuView()
        self.chat: Optional[ChatSession] = None
        self.topology: Optional[TopologyInfo] = None
        self.available_models: List[str] = []
        self.is_api_online = False

        self.health_job: Optional[BackgroundJob[bool]] = None
        self.topology_job: Optional[BackgroundJob[Optional[TopologyInfo]]] = None
        self.last_health_check: Optional[float] = None
        self.last_topology_check: Optional[float] = None

    # --- derived state --------------------------------------------------------

    @property
    def loaded_model(self) -> Optional[str]:
        return self.topology.model if self.topology is not None else None

    @property
    def model_loaded(self) -> bool:
        return bool(self.loaded_model)

    @property
    def topology_loaded(self) -> bool:
        return self.topology is not None

    # --- transitions ----------------------------------------------------------

    def set_view(self, view: AppView) -> None:
        """Replace the active view, abandoning whatever the old one had in flight."""
        old = self.view
        if old is view:
            return
        cancel = getattr(old, "cancel_jobs", None)
        if cancel is not None:
            cancel()
        if isinstance(old, MenuView):
            self._cancel_polls()
        if isinstance(old, ChatView) and self.chat is not None:
            if self.chat.is_generating:
                self.chat.finish_response()
            self.chat.stop_stream()
        logger.debug("View %s -> %s", type(old).__name__, type(view).__name__)
        self.view = view

    def to_menu(self) -> None:
        self.set_view(MenuView())

    def quit(self) -> None:
        logger.info("Quit requested")
        self.set_view(MenuView())
        self._cancel_polls()
        self.running = False

    def _cancel_polls(self) -> None:
        for job in (self.health_job, self.topology_job):
            if job is not None:
                job.cancel()
        self.health_job = None
        self.topology_job = None

    def refresh_topology_soon(self) -> None:
        """Make the next menu tick refetch the topology immediately."""
        self.last_topology_check = None

    def open_chat(self) -> ChatSession:
        """Chat session for the loaded model, keeping history if it is unchanged."""
        model_id = self.loaded_model or ""
        if self.chat is None or self.chat.model != model_id:
            self.close_chat()
            self.chat = ChatSession(model_id, self.config.max_tokens)
        return self.chat

    def close_chat(self) -> None:
        if self.chat is not None:
            self.chat.stop_stream()
        self.chat = None

    def commit_config(self, config: Config) -> None:
        """Adopt a saved working copy and point the API client at it."""
        self.config = config.model_copy()
        self.temp_config = config.model_copy()
        self.api = ApiClient.from_config(self.config)
        self.is_api_online = False
        self.last_health_check = None
        self.refresh_topology_soon()

    # --- dispatch -------------------------------------------------------------

    def handle_key(self, key: Key) -> None:
        handle_input, _ = DISPATCH[type(self.view)]
        handle_input(self, self.view, key)

    async def tick(self) -> None:
        _, tick = DISPATCH[type(self.view)]
        await tick(self, self.view)
