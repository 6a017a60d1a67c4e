"""Top-level views. Exactly one is active; each carries its own sub-state."""

from typing import Union

from .chat import ChatView
from .developer import DeveloperView
from .devices import DevicesView
from .menu import MenuView
from .model import ModelLoadView, ModelUnloadView
from .settings import SettingsView
from .topology import TopologyView

AppView = Union[
    MenuView,
    ChatView,
    TopologyView,
    ModelLoadView,
    ModelUnloadView,
    DevicesView,
    SettingsView,
    DeveloperView,
]

__all__ = [
    "AppView",
    "ChatView",
    "DeveloperView",
    "DevicesView",
    "MenuView",
    "ModelLoadView",
    "ModelUnloadView",
    "SettingsView",
    "TopologyView",
]
