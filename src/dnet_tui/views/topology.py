"""Topology ring and per-shard health detail."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Union

from dnet_tui.api.errors import NO_TOPOLOGY_HINT, describe_error
from dnet_tui.api.models import DeviceProperties, ShardHealth, TopologyInfo
from dnet_tui.jobs import BackgroundJob
from dnet_tui.keys import KEY_DOWN, KEY_ENTER, KEY_ESCAPE, KEY_UP, Key

from .common import Failed, Fetch, Loaded, Loading

if TYPE_CHECKING:
    from dnet_tui.app import App


@dataclass
class RingState:
    topology: Fetch[TopologyInfo] = field(default_factory=Loading)
    selected: int = 0
    job: Optional[BackgroundJob[Optional[TopologyInfo]]] = None

    def devices(self) -> list[DeviceProperties]:
        if isinstance(self.topology, Loaded):
            return self.topology.value.devices
        return []


@dataclass
class ShardState:
    device: DeviceProperties
    ring: RingState
    health: Fetch[ShardHealth] = field(default_factory=Loading)
    job: Optional[BackgroundJob[ShardHealth]] = None

    @property
    def instance(self) -> str:
        return self.device.instance


@dataclass
class TopologyView:
    state: Union[RingState, ShardState] = field(default_factory=RingState)

    def cancel_jobs(self) -> None:
        for sub in (self.state, getattr(self.state, "ring", None)):
            if sub is not None and sub.job is not None:
                sub.job.cancel()
                sub.job = None


def handle_input(app: "App", view: TopologyView, key: Key) -> None:
    if key.is_quit:
        app.quit()
        return
    state = view.state
    if isinstance(state, ShardState):
        if key.name == KEY_ESCAPE:
            if state.job is not None:
                state.job.cancel()
            view.state = state.ring
        return

    devices = state.devices()
    if key.name == KEY_ESCAPE:
        app.to_menu()
    elif key.name == KEY_UP and devices:
        state.selected = (state.selected - 1) % len(devices)
    elif key.name == KEY_DOWN and devices:
        state.selected = (state.selected + 1) % len(devices)
    elif key.name == KEY_ENTER and devices:
        view.state = ShardState(device=devices[state.selected], ring=state)
    elif key.is_char and key.name.lower() == "r" and state.job is None:
        state.topology = Loading()


async def tick(app: "App", view: TopologyView) -> None:
    state = view.state
    if isinstance(state, ShardState):
        _tick_shard(app, state)
    else:
        _tick_ring(app, state)


def _tick_ring(app: "App", state: RingState) -> None:
    if not isinstance(state.topology, Loading):
        return
    if state.job is None:
        state.job = BackgroundJob(app.api.get_topology(), name="topology-view")
        return
    outcome = state.job.poll()
    if outcome is None:
        return
    state.job = None
    if not outcome.ok:
        state.topology = Failed(describe_error(outcome.error))
        return
    app.topology = outcome.value
    if outcome.value is None:
        state.topology = Failed(NO_TOPOLOGY_HINT)
        return
    state.topology = Loaded(outcome.value)
    if state.selected >= len(outcome.value.devices):
        state.selected = 0


def _tick_shard(app: "App", state: ShardState) -> None:
    if not isinstance(state.health, Loading):
        return
    if state.job is None:
        state.job = BackgroundJob(
            app.api.get_shard_health(state.device), name=f"health-{state.instance}"
        )
        return
    outcome = state.job.poll()
    if outcome is None:
        return
    state.job = None
    if outcome.ok:
        state.health = Loaded(outcome.value)
    else:
        state.health = Failed(f"Health check for {state.instance} failed: {outcome.error}")
