"""Developer tools: the manual layer-assignment editor.

The editor keeps a partition of ``range(num_layers)`` over the discovered
shards. An assignment is accepted only if it does not take layers owned by
another shard and forms one contiguous range; submission is allowed only once
every layer is owned. The ring order is derived from the partition at submit
time, so a full cover always yields a single cycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from dnet_tui.api.errors import describe_error
from dnet_tui.api.models import (
    LayerAssignment,
    LoadModelRequest,
    LoadModelResponse,
    ManualDevice,
    PrepareTopologyManualRequest,
    ShardInfo,
)
from dnet_tui.config import Config
from dnet_tui.constants import layers_for_model
from dnet_tui.jobs import BackgroundJob
from dnet_tui.keys import (
    KEY_BACKSPACE,
    KEY_DELETE,
    KEY_DOWN,
    KEY_ENTER,
    KEY_ESCAPE,
    KEY_UP,
    Key,
)
from dnet_tui.utils.layers import (
    determine_next_instances,
    find_collisions,
    find_missing_layers,
    format_layers,
    is_contiguous,
    parse_layer_input,
    ring_order,
)
from dnet_tui.utils.logger import logger

from .model import model_choices

if TYPE_CHECKING:
    from dnet_tui.app import App

DEVELOPER_MENU_ITEMS = [
    ("Manual Layer Assignment", "Manually assign layers to shards"),
]
LAYER_INPUT_CHARS = set("0123456789,- ")


@dataclass
class AssignmentEditor:
    model: str
    num_layers: int
    shards: List[ShardInfo]
    assignments: Dict[str, List[int]] = field(default_factory=dict)
    selected: int = 0
    input_mode: bool = False
    input_buffer: str = ""
    status: str = ""

    @property
    def selected_shard(self) -> Optional[ShardInfo]:
        if 0 <= self.selected < len(self.shards):
            return self.shards[self.selected]
        return None

    def assigned_layers(self) -> set[int]:
        return {layer for layers in self.assignments.values() for layer in layers}

    def missing_layers(self) -> List[int]:
        return find_missing_layers(self.assigned_layers(), self.num_layers)

    def is_complete(self) -> bool:
        return not self.missing_layers()

    def is_assigned(self, shard: ShardInfo) -> bool:
        """Whether the shard shows as assigned: edited here or already serving."""
        return bool(self.assignments.get(shard.instance)) or shard.model_loaded

    def try_assign(self, instance: str, layers: List[int]) -> Optional[str]:
        """Assign ``layers`` to ``instance``, replacing its previous set.

        Returns an error message and leaves the map unchanged if the layers
        collide with another shard or are not one contiguous range.
        """
        collisions = find_collisions(self.assignments, instance, layers)
        if collisions:
            owners = sorted(set(collisions.values()))
            return (
                f"Layers {format_layers(collisions)} already assigned to "
                f"{', '.join(owners)}"
            )
        if not is_contiguous(layers):
            return f"Layers for {instance} must be one contiguous range"
        self.assignments[instance] = list(layers)
        return None

    def clear(self, instance: str) -> None:
        self.assignments.pop(instance, None)

    def build_request(self, config: Config) -> PrepareTopologyManualRequest:
        order = ring_order(self.assignments)
        next_instances = determine_next_instances(self.assignments)
        by_instance = {s.instance: s for s in self.shards}

        devices: List[ManualDevice] = []
        assignments: List[LayerAssignment] = []
        for instance in order:
            device = by_instance[instance].device
            layers = self.assignments[instance]
            devices.append(
                ManualDevice(
                    instance=instance,
                    local_ip=device.local_ip,
                    server_port=device.server_port,
                    shard_port=device.shard_port,
                )
            )
            assignments.append(
                LayerAssignment(
                    instance=instance,
                    layers=[layers],
                    next_instance=next_instances.get(instance),
                    window_size=len(layers),
                    residency_size=len(layers),
                )
            )
        return PrepareTopologyManualRequest(
            model=self.model,
            kv_bits=config.kv_bits,
            seq_len=config.seq_len,
            max_batch_size=2**config.max_batch_exp,
            devices=devices,
            assignments=assignments,
            num_layers=self.num_layers,
        )


@dataclass
class DevMenu:
    selected: int = 0


@dataclass
class ManualSelectingModel:
    models: List[str]
    selected: int = 0


@dataclass
class ManualFetchingShards:
    model: str


@dataclass
class ManualAssigning:
    editor: AssignmentEditor


@dataclass
class ManualSubmitting:
    editor: AssignmentEditor


@dataclass
class ManualLoading:
    model: str


@dataclass
class ManualSuccess:
    response: LoadModelResponse


@dataclass
class ManualError:
    message: str


DeveloperState = Union[
    DevMenu,
    ManualSelectingModel,
    ManualFetchingShards,
    ManualAssigning,
    ManualSubmitting,
    ManualLoading,
    ManualSuccess,
    ManualError,
]
IN_FLIGHT = (ManualFetchingShards, ManualSubmitting, ManualLoading)


@dataclass
class DeveloperView:
    state: DeveloperState = field(default_factory=DevMenu)
    job: Optional[BackgroundJob[Any]] = None

    def cancel_jobs(self) -> None:
        if self.job is not None:
            self.job.cancel()
            self.job = None


def handle_input(app: "App", view: DeveloperView, key: Key) -> None:
    if key.is_quit:
        app.quit()
        return
    state = view.state
    if isinstance(state, IN_FLIGHT):
        return

    if isinstance(state, DevMenu):
        if key.name == KEY_ESCAPE:
            app.to_menu()
        elif key.name == KEY_UP:
            state.selected = max(state.selected - 1, 0)
        elif key.name == KEY_DOWN:
            state.selected = min(state.selected + 1, len(DEVELOPER_MENU_ITEMS) - 1)
        elif key.name == KEY_ENTER:
            view.state = ManualSelectingModel(model_choices(app))
    elif isinstance(state, ManualSelectingModel):
        if key.name == KEY_ESCAPE:
            view.state = DevMenu()
        elif key.name == KEY_UP:
            state.selected = max(state.selected - 1, 0)
        elif key.name == KEY_DOWN:
            state.selected = min(state.selected + 1, len(state.models) - 1)
        elif key.name == KEY_ENTER and state.models:
            view.state = ManualFetchingShards(state.models[state.selected])
    elif isinstance(state, ManualAssigning):
        _handle_assigning(view, state.editor, key)
    elif key.name in (KEY_ESCAPE, KEY_ENTER):
        # ManualSuccess / ManualError
        view.state = DevMenu()


def _handle_assigning(view: DeveloperView, editor: AssignmentEditor, key: Key) -> None:
    if editor.input_mode:
        _handle_layer_input(editor, key)
        return

    shard = editor.selected_shard
    if key.name == KEY_ESCAPE:
        view.state = DevMenu()
    elif key.name == KEY_UP:
        editor.selected = max(editor.selected - 1, 0)
    elif key.name == KEY_DOWN:
        editor.selected = min(editor.selected + 1, max(len(editor.shards) - 1, 0))
    elif key.name == KEY_ENTER and shard is not None:
        editor.input_mode = True
        current = editor.assignments.get(shard.instance)
        editor.input_buffer = format_layers(current) if current else ""
        editor.status = ""
    elif key.name in (KEY_BACKSPACE, KEY_DELETE) and shard is not None:
        editor.clear(shard.instance)
        editor.status = f"Cleared assignment for {shard.instance}"
    elif key.is_char and key.name.lower() == "c":
        missing = editor.missing_layers()
        if missing:
            editor.status = f"Cannot submit, unassigned layers: {format_layers(missing)}"
            return
        view.state = ManualSubmitting(editor)


def _handle_layer_input(editor: AssignmentEditor, key: Key) -> None:
    shard = editor.selected_shard
    if key.name == KEY_ESCAPE:
        editor.input_mode = False
        editor.input_buffer = ""
    elif key.name == KEY_BACKSPACE:
        editor.input_buffer = editor.input_buffer[:-1]
    elif key.name == KEY_ENTER and shard is not None:
        layers = parse_layer_input(editor.input_buffer, editor.num_layers)
        if layers is None:
            editor.status = (
                f"Invalid layers '{editor.input_buffer}', "
                f"use e.g. 0-3,7 with values below {editor.num_layers}"
            )
            return
        error = editor.try_assign(shard.instance, layers)
        if error is not None:
            editor.status = error
            return
        editor.input_mode = False
        editor.input_buffer = ""
        editor.status = f"Assigned {format_layers(layers)} to {shard.instance}"
    elif key.is_char and key.name in LAYER_INPUT_CHARS:
        editor.input_buffer += key.name


def num_layers_for(app: "App", model: str) -> int:
    if app.topology is not None and app.topology.model == model:
        return app.topology.num_layers
    return layers_for_model(model)


async def tick(app: "App", view: DeveloperView) -> None:
    state = view.state
    if not isinstance(state, IN_FLIGHT):
        return

    if view.job is None:
        if isinstance(state, ManualFetchingShards):
            view.job = BackgroundJob(app.api.fetch_shards(), name="shards")
        elif isinstance(state, ManualSubmitting):
            req = state.editor.build_request(app.config)
            view.job = BackgroundJob(
                app.api.prepare_topology_manual(req), name="prepare-manual"
            )
        else:
            req = LoadModelRequest(
                model=state.model,
                kv_bits=app.config.kv_bits,
                seq_len=app.config.seq_len,
            )
            view.job = BackgroundJob(app.api.load_model(req), name="load-manual")
        return

    outcome = view.job.poll()
    if outcome is None:
        return
    view.job = None

    if not outcome.ok:
        view.state = ManualError(describe_error(outcome.error))
        return

    if isinstance(state, ManualFetchingShards):
        shards: List[ShardInfo] = outcome.value
        if not shards:
            view.state = ManualError(
                "No shards discovered. Start at least one shard and try again."
            )
            return
        num_layers = num_layers_for(app, state.model)
        logger.info(
            "Manual assignment for %s: %d layers over %d shards",
            state.model,
            num_layers,
            len(shards),
        )
        view.state = ManualAssigning(
            AssignmentEditor(model=state.model, num_layers=num_layers, shards=shards)
        )
    elif isinstance(state, ManualSubmitting):
        app.topology = outcome.value
        view.state = ManualLoading(state.editor.model)
    else:
        view.state = ManualSuccess(outcome.value)
        app.refresh_topology_soon()
