"""Tests: every view renders through the rich layout without errors."""

import io

import pytest
from rich.console import Console

from dnet_tui.api.errors import NO_TOPOLOGY_HINT
from dnet_tui.api.models import LoadModelResponse, ShardHealth, TopologyInfo
from dnet_tui.chat.session import ChatMessage
from dnet_tui.ui import END_THINKING_MARKER, DashboardUI
from dnet_tui.utils.logger import logger as tui_logger
from dnet_tui.views import (
    ChatView,
    DeveloperView,
    DevicesView,
    ModelLoadView,
    ModelUnloadView,
    SettingsView,
    TopologyView,
)
from dnet_tui.views import developer as dev
from dnet_tui.views import model as mdl
from dnet_tui.views.common import Failed, Loaded
from dnet_tui.views.topology import RingState, ShardState
from tests.fakes import health_payload, topology_payload

pytestmark = [pytest.mark.views]


@pytest.fixture
def ui(make_app):
    app = make_app()
    console = Console(file=io.StringIO(), width=110, height=40, color_system=None)
    dashboard = DashboardUI(app, console=console)
    yield dashboard
    dashboard.app.close_chat()
    tui_logger.removeHandler(dashboard.log_handler)


def _draw(ui: DashboardUI) -> str:
    ui.console.print(ui.render())
    out = ui.console.file.getvalue()
    ui.console.file.seek(0)
    ui.console.file.truncate()
    return out


def test_menu_shows_disabled_reasons(ui):
    out = _draw(ui)
    assert "Chat (no model loaded)" in out
    assert "Load a model (API offline)" in out
    assert "API offline" in out


def test_chat_renders_thinking_and_updates_scroll(ui):
    app = ui.app
    app.topology = TopologyInfo.model_validate(topology_payload())
    session = app.open_chat()
    for i in range(40):
        session.messages.append(ChatMessage.user(f"question {i}"))
    session.messages.append(ChatMessage.assistant("<think>pondering</think>The answer"))
    app.set_view(ChatView())

    out = _draw(ui)
    assert "The answer" in out and END_THINKING_MARKER in out
    assert session.scroll_max > 0
    assert session.scroll_cur == session.scroll_max


def test_topology_views_render(ui):
    topo = TopologyInfo.model_validate(topology_payload())
    ring = RingState(topology=Loaded(topo))
    ui.app.set_view(TopologyView(ring))
    assert "[0..17]" in _draw(ui)

    shard = ShardState(device=topo.devices[1], ring=ring)
    shard.health = Loaded(ShardHealth(**health_payload("S2", list(range(18, 36)), True)))
    ui.app.view.state = shard
    assert "18-35" in _draw(ui)

    ui.app.view.state = RingState(topology=Failed(NO_TOPOLOGY_HINT))
    assert "No Topology Configured" in _draw(ui)


def test_load_and_unload_render(ui):
    view = ModelLoadView(mdl.SelectingModel(["a/model", "b/model"]))
    ui.app.set_view(view)
    assert "b/model" in _draw(ui)

    view.state = mdl.LoadSuccess(
        LoadModelResponse.model_validate(
            {
                "model": "a/model",
                "success": False,
                "shard_statuses": [
                    {"instance": "S1", "success": True, "layers_loaded": [0, 1, 2]},
                    {"instance": "S2", "success": False, "message": "OOM"},
                ],
            }
        )
    )
    out = _draw(ui)
    assert "0-2" in out and "OOM" in out

    ui.app.set_view(ModelUnloadView(mdl.UnloadError("Error: boom")))
    assert "boom" in _draw(ui)


def test_devices_settings_and_editor_render(ui):
    ui.app.set_view(DevicesView(state=Failed("Error: nope")))
    assert "nope" in _draw(ui)

    ui.app.set_view(SettingsView(editing=True, buffer="90"))
    assert "90_" in _draw(ui)

    editor = dev.AssignmentEditor(model="m", num_layers=4, shards=[])
    ui.app.set_view(DeveloperView(dev.ManualAssigning(editor)))
    assert "Unassigned layers: 0-3" in _draw(ui)
