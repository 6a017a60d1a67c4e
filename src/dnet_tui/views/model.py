"""Model load (automatic placement) and unload flows."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional, Union

from dnet_tui.api.errors import describe_error
from dnet_tui.api.models import (
    LoadModelRequest,
    LoadModelResponse,
    PrepareTopologyRequest,
    UnloadModelResponse,
)
from dnet_tui.constants import AVAILABLE_MODELS
from dnet_tui.jobs import BackgroundJob
from dnet_tui.keys import KEY_DOWN, KEY_ENTER, KEY_ESCAPE, KEY_UP, Key
from dnet_tui.utils.logger import logger

if TYPE_CHECKING:
    from dnet_tui.app import App


# --- load -----------------------------------------------------------------


@dataclass
class FetchingModels:
    pass


@dataclass
class SelectingModel:
    models: List[str]
    selected: int = 0

    @property
    def model(self) -> str:
        return self.models[self.selected]


@dataclass
class PreparingTopology:
    model: str


@dataclass
class LoadingModel:
    model: str


@dataclass
class LoadSuccess:
    response: LoadModelResponse


@dataclass
class LoadError:
    message: str


LoadState = Union[
    FetchingModels, SelectingModel, PreparingTopology, LoadingModel, LoadSuccess, LoadError
]
IN_FLIGHT = (FetchingModels, PreparingTopology, LoadingModel)


@dataclass
class ModelLoadView:
    state: LoadState = field(default_factory=FetchingModels)
    job: Optional[BackgroundJob[Any]] = None

    def cancel_jobs(self) -> None:
        if self.job is not None:
            self.job.cancel()
            self.job = None


def model_choices(app: "App") -> List[str]:
    """Models advertised by the server, else the built-in catalog."""
    return app.available_models or list(AVAILABLE_MODELS)


def handle_load_input(app: "App", view: ModelLoadView, key: Key) -> None:
    if key.is_quit:
        app.quit()
        return
    state = view.state
    if isinstance(state, IN_FLIGHT):
        return
    if isinstance(state, SelectingModel):
        if key.name == KEY_ESCAPE:
            app.to_menu()
        elif key.name == KEY_UP:
            state.selected = max(state.selected - 1, 0)
        elif key.name == KEY_DOWN:
            state.selected = min(state.selected + 1, len(state.models) - 1)
        elif key.name == KEY_ENTER and state.models:
            view.state = PreparingTopology(state.model)
        return
    # LoadSuccess / LoadError
    if key.name in (KEY_ESCAPE, KEY_ENTER):
        app.to_menu()


async def tick_load(app: "App", view: ModelLoadView) -> None:
    state = view.state
    if not isinstance(state, IN_FLIGHT):
        return

    if view.job is None:
        if isinstance(state, FetchingModels):
            view.job = BackgroundJob(app.api.get_models(), name="models")
        elif isinstance(state, PreparingTopology):
            req = PrepareTopologyRequest(
                model=state.model,
                kv_bits=app.config.kv_bits,
                seq_len=app.config.seq_len,
                max_batch_exp=app.config.max_batch_exp,
            )
            view.job = BackgroundJob(app.api.prepare_topology(req), name="prepare")
        else:
            req = LoadModelRequest(
                model=state.model,
                kv_bits=app.config.kv_bits,
                seq_len=app.config.seq_len,
            )
            view.job = BackgroundJob(app.api.load_model(req), name="load")
        return

    outcome = view.job.poll()
    if outcome is None:
        return
    view.job = None

    if isinstance(state, FetchingModels):
        if outcome.ok and outcome.value:
            app.available_models = [m.id for m in outcome.value]
        elif not outcome.ok:
            logger.warning("Falling back to built-in model list: %s", outcome.error)
        view.state = SelectingModel(model_choices(app))
        return

    if not outcome.ok:
        view.state = LoadError(describe_error(outcome.error))
        return

    if isinstance(state, PreparingTopology):
        app.topology = outcome.value
        view.state = LoadingModel(state.model)
        return

    response: LoadModelResponse = outcome.value
    view.state = LoadSuccess(response)
    if response.success:
        logger.info(
            "Model %s loaded on %d shards",
            response.model,
            len(response.shard_statuses),
        )
    app.refresh_topology_soon()


# --- unload ---------------------------------------------------------------


@dataclass
class Unloading:
    pass


@dataclass
class UnloadSuccess:
    response: UnloadModelResponse


@dataclass
class UnloadError:
    message: str


UnloadState = Union[Unloading, UnloadSuccess, UnloadError]


@dataclass
class ModelUnloadView:
    state: UnloadState = field(default_factory=Unloading)
    job: Optional[BackgroundJob[UnloadModelResponse]] = None

    def cancel_jobs(self) -> None:
        if self.job is not None:
            self.job.cancel()
            self.job = None


def handle_unload_input(app: "App", view: ModelUnloadView, key: Key) -> None:
    if key.is_quit:
        app.quit()
        return
    if isinstance(view.state, Unloading):
        return
    if key.name in (KEY_ESCAPE, KEY_ENTER):
        app.to_menu()


async def tick_unload(app: "App", view: ModelUnloadView) -> None:
    if not isinstance(view.state, Unloading):
        return
    if view.job is None:
        view.job = BackgroundJob(app.api.unload_model(), name="unload")
        return
    outcome = view.job.poll()
    if outcome is None:
        return
    view.job = None
    if not outcome.ok:
        view.state = UnloadError(describe_error(outcome.error))
        return
    view.state = UnloadSuccess(outcome.value)
    if outcome.value.success:
        app.topology = None
        app.close_chat()
    app.refresh_topology_soon()
