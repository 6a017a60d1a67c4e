"""Rich renderer and main loop for the dashboard."""

import logging
from collections import deque
from typing import Deque, List, Optional

import psutil
from rich.console import Console, Group, RenderableType
from rich.layout import Layout
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.spinner import Spinner
from rich.table import Table
from rich.text import Text

from dnet_tui.api.errors import is_connection_hint, is_no_topology_hint
from dnet_tui.app import App
from dnet_tui.chat.session import ChatSession, split_think_tags
from dnet_tui.config import Config
from dnet_tui.terminal import KeyReader
from dnet_tui.utils.banner import get_banner_text
from dnet_tui.utils.layers import format_layer_ranges, format_layers, format_rounds
from dnet_tui.utils.logger import logger as tui_logger
from dnet_tui.views import (
    ChatView,
    DeveloperView,
    DevicesView,
    MenuView,
    ModelLoadView,
    ModelUnloadView,
    SettingsView,
    TopologyView,
)
from dnet_tui.views import developer as dev
from dnet_tui.views import model as mdl
from dnet_tui.views.chat import ChatError
from dnet_tui.views.common import Failed, Loaded
from dnet_tui.views.devices import sorted_devices
from dnet_tui.views.menu import MENU_ITEMS, describe, is_disabled
from dnet_tui.views.settings import SETTINGS_FIELDS
from dnet_tui.views.topology import RingState, ShardState

POLL_INTERVAL = 0.1
END_THINKING_MARKER = "---end thinking---"


class TUILogHandler(logging.Handler):
    """Logging handler that keeps recent records for the footer."""

    def __init__(self, log_queue: Deque[str]):
        super().__init__()
        self.log_queue = log_queue
        self.formatter = logging.Formatter(
            "%(asctime)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S"
        )

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            if record.levelno >= logging.ERROR:
                style = "red"
            elif record.levelno >= logging.WARNING:
                style = "yellow"
            elif record.levelno >= logging.INFO:
                style = "white"
            else:
                style = "dim"
            self.log_queue.append(f"[{style}]{escape(msg)}[/]")
        except Exception:
            self.handleError(record)


def _selectable(label: str, selected: bool, disabled: bool = False) -> Text:
    if selected and disabled:
        return Text(label, style="bold grey50 on grey78")
    if selected:
        return Text(label, style="bold black on cyan")
    if disabled:
        return Text(label, style="grey50")
    return Text(label)


def _hint(text: str) -> Text:
    return Text(text, style="dim", justify="center")


def _error_panel(message: str, title: str = "Error") -> Panel:
    if is_no_topology_hint(message):
        return Panel(
            Text(message, justify="center"),
            title="No Topology Configured",
            border_style="yellow",
        )
    if is_connection_hint(message):
        return Panel(
            Text(message, justify="center"), title="Connection Error", border_style="red"
        )
    return Panel(Text(message, style="red"), title=title, border_style="red")


class DashboardUI:
    """Draws the active view and drives the key/tick/redraw loop."""

    def __init__(self, app: App, console: Optional[Console] = None):
        self.app = app
        self.console = console or Console()
        self.log_queue: Deque[str] = deque(maxlen=100)
        self.banner_text = get_banner_text()

        self.layout = Layout()
        self.layout.split(
            Layout(name="header", size=3),
            Layout(name="body", ratio=1),
            Layout(name="footer", size=3),
        )

        self.log_handler = TUILogHandler(self.log_queue)
        tui_logger.addHandler(self.log_handler)

    # --- chrome -----------------------------------------------------------------

    def _generate_header(self, title: str) -> Panel:
        app = self.app
        status = (
            "[bold green]API online[/]" if app.is_api_online else "[bold red]API offline[/]"
        )
        model_text = app.loaded_model or "no model loaded"
        grid = Table.grid(expand=True)
        grid.add_column(justify="left")
        grid.add_column(justify="right")
        grid.add_row(
            f"[bold]{title}[/bold]",
            f"{status}  [dim]{app.config.api_url()}[/dim]  {model_text}",
        )
        return Panel(grid, style="cyan")

    def _generate_footer(self, keys_hint: str) -> Panel:
        last_log = self.log_queue[-1] if self.log_queue else ""
        mem = psutil.virtual_memory()
        used_gb = mem.used / (1024**3)
        total_gb = mem.total / (1024**3)

        grid = Table.grid(expand=True)
        grid.add_column(justify="left", ratio=2)
        grid.add_column(justify="right")
        log_line = Text.from_markup(last_log, overflow="ellipsis")
        log_line.no_wrap = True
        grid.add_row(
            log_line,
            Text.from_markup(
                f"[bold]RAM:[/bold] {used_gb:.1f}/{total_gb:.1f} GB  [dim]{keys_hint}[/dim]"
            ),
        )
        return Panel(grid, border_style="cyan")

    # --- views ------------------------------------------------------------------

    def render(self) -> Layout:
        view = self.app.view
        if isinstance(view, MenuView):
            title, body, keys = "dnet", self._menu(view), "Enter: Select | Esc: Quit"
        elif isinstance(view, ChatView):
            title, body, keys = self._chat(view)
        elif isinstance(view, TopologyView):
            title, body, keys = self._topology(view)
        elif isinstance(view, ModelLoadView):
            title, body, keys = self._model_load(view)
        elif isinstance(view, ModelUnloadView):
            title, body, keys = self._model_unload(view)
        elif isinstance(view, DevicesView):
            title, body, keys = self._devices(view)
        elif isinstance(view, SettingsView):
            title, body, keys = self._settings(view)
        else:
            title, body, keys = self._developer(view)

        self.layout["header"].update(self._generate_header(title))
        self.layout["body"].update(body)
        self.layout["footer"].update(self._generate_footer(keys))
        return self.layout

    def _menu(self, view: MenuView) -> RenderableType:
        items = Table.grid(padding=(0, 2))
        items.add_column()
        items.add_column()
        for i, item in enumerate(MENU_ITEMS):
            disabled = is_disabled(item, self.app)
            selected = i == view.selected
            items.add_row(
                _selectable(f"{item.label:<15}", selected, disabled),
                _selectable(describe(item, self.app), selected, disabled),
            )
        banner = Text(self.banner_text, style="bold white", justify="center")
        return Panel(
            Group(banner, Text(""), items), border_style="cyan", padding=(1, 4)
        )

    def _body_height(self) -> int:
        header = self.layout["header"].size or 3
        footer = self.layout["footer"].size or 3
        return max(self.console.size.height - header - footer, 5)

    def _history_text(self, session: ChatSession) -> Text:
        text = Text()
        for msg in session.messages:
            if msg.role == "system":
                text.append(f"[{msg.timestamp}] {msg.content}\n\n", style="italic yellow")
                continue
            who, style = ("You", "bold cyan") if msg.role == "user" else ("Model", "bold green")
            text.append(f"[{msg.timestamp}] {who}\n", style=style)
            self._append_reply(text, msg.content)
            text.append("\n\n")
        if session.is_generating:
            text.append("Model\n", style="bold green")
            if session.current_response:
                self._append_reply(text, session.current_response)
            else:
                text.append("...", style="dim")
        return text

    @staticmethod
    def _append_reply(text: Text, content: str) -> None:
        before, thinking, after = split_think_tags(content)
        if before:
            text.append(before)
        if thinking:
            text.append(thinking, style="dim italic")
        if thinking is not None and after is not None:
            text.append(f"\n{END_THINKING_MARKER}\n", style="dim")
        if after:
            text.append(after)

    def _chat(self, view: ChatView) -> tuple[str, RenderableType, str]:
        session = self.app.chat
        if isinstance(view.state, ChatError) or session is None:
            message = view.state.message if isinstance(view.state, ChatError) else ""
            return "Chat", _error_panel(f"Error: {message}"), "Esc: Back"

        title = f"Chatting with {session.model} (max tokens: {session.max_tokens})"
        input_height = 3
        history_height = max(self._body_height() - input_height - 2, 1)
        width = max(self.console.size.width - 4, 10)

        lines = self._history_text(session).wrap(self.console, width)
        session.set_scroll_max(len(lines) - history_height)
        visible = lines[session.scroll_cur : session.scroll_cur + history_height]
        history = Panel(Text("\n").join(visible), border_style="cyan")

        if session.is_generating:
            prompt: RenderableType = Spinner("dots", text=" Generating...", style="cyan")
        else:
            line = Text(session.input)
            line.append(" ")
            line.stylize("reverse", session.cursor, session.cursor + 1)
            prompt = line
        body = Layout()
        body.split(
            Layout(history, name="history", ratio=1),
            Layout(Panel(prompt, title="Message"), name="input", size=input_height),
        )
        keys = (
            "Ctrl+C: Stop | Esc: Exit chat"
            if session.is_generating
            else "Enter: Send | Up/Down: Scroll | Ctrl+L: Clear | Ctrl+T/R: Tokens | Esc: Exit"
        )
        return title, body, keys

    def _topology(self, view: TopologyView) -> tuple[str, RenderableType, str]:
        state = view.state
        if isinstance(state, ShardState):
            return self._shard(state)
        return self._ring(state)

    def _ring(self, state: RingState) -> tuple[str, RenderableType, str]:
        keys = "Up/Down: Select | Enter: Shard details | r: Refresh | Esc: Back"
        if isinstance(state.topology, Failed):
            return "Topology", _error_panel(state.topology.message), keys
        if not isinstance(state.topology, Loaded):
            return "Topology", Spinner("dots", text=" Loading topology..."), keys

        topo = state.topology.value
        table = Table(expand=True, border_style="cyan")
        for col in ("#", "Device", "Address", "Layers", "Next", "Window", "Residency"):
            table.add_column(col)
        for i, device in enumerate(topo.devices):
            assignment = topo.assignment_for(device.instance)
            selected = i == state.selected
            style = "bold black on cyan" if selected else ""
            table.add_row(
                str(i),
                device.instance,
                device.address(),
                format_rounds(assignment.layers) if assignment else "-",
                (assignment.next_instance or "-") if assignment else "-",
                str(assignment.window_size) if assignment else "-",
                str(assignment.residency_size) if assignment else "-",
                style=style,
            )
        summary = Text(
            f"Model: {topo.model or 'none'}   Layers: {topo.num_layers}   "
            f"KV: {topo.kv_bits}   Devices: {len(topo.devices)}",
            style="bold",
        )
        return "Topology", Group(summary, table), keys

    def _shard(self, state: ShardState) -> tuple[str, RenderableType, str]:
        title = f"Shard {state.instance}"
        keys = "Esc: Back to ring"
        if isinstance(state.health, Failed):
            return title, _error_panel(state.health.message), keys
        if not isinstance(state.health, Loaded):
            return title, Spinner("dots", text=f" Querying {state.device.address()}..."), keys
        health = state.health.value
        table = Table.grid(padding=(0, 2))
        table.add_column(style="bold")
        table.add_column()
        rows = [
            ("Status", health.status),
            ("Running", "yes" if health.running else "no"),
            ("Model loaded", "yes" if health.model_loaded else "no"),
            ("Model", health.model_path or "-"),
            ("Layers", format_layer_ranges(health.assigned_layers)),
            ("Queue size", str(health.queue_size)),
            ("HTTP port", str(health.http_port)),
            ("gRPC port", str(health.grpc_port)),
            ("Instance", health.instance or state.instance),
        ]
        for name, value in rows:
            table.add_row(name, value)
        return title, Panel(table, border_style="cyan"), keys

    def _model_list(self, models: List[str], selected: int) -> Table:
        table = Table.grid()
        table.add_column()
        for i, name in enumerate(models):
            table.add_row(_selectable(name, i == selected))
        return table

    def _model_load(self, view: ModelLoadView) -> tuple[str, RenderableType, str]:
        state = view.state
        title = "Load Model"
        if isinstance(state, mdl.FetchingModels):
            return title, Spinner("dots", text=" Fetching models..."), "Ctrl+C: Quit"
        if isinstance(state, mdl.SelectingModel):
            body = Panel(self._model_list(state.models, state.selected), border_style="cyan")
            return title, body, "Up/Down: Select | Enter: Load | Esc: Back"
        if isinstance(state, mdl.PreparingTopology):
            text = f" Preparing topology for {state.model}..."
            return title, Spinner("dots", text=text), "Ctrl+C: Quit"
        if isinstance(state, mdl.LoadingModel):
            text = f" Loading {state.model} on shards..."
            return title, Spinner("dots", text=text), "Ctrl+C: Quit"
        if isinstance(state, mdl.LoadSuccess):
            return title, self._load_result(state.response), "Enter/Esc: Back"
        return title, _error_panel(state.message), "Enter/Esc: Back"

    @staticmethod
    def _load_result(response) -> Panel:
        table = Table(expand=True)
        table.add_column("Shard")
        table.add_column("Result")
        table.add_column("Layers")
        table.add_column("Message")
        for status in response.shard_statuses:
            table.add_row(
                status.instance,
                "[green]ok[/]" if status.success else "[red]failed[/]",
                format_layers(status.layers_loaded or [], empty="-"),
                status.message or "",
            )
        headline = (
            f"[bold green]{response.model} loaded[/]"
            if response.success
            else f"[bold red]{response.model} failed to load on some shards[/]"
        )
        parts: List[RenderableType] = [Text.from_markup(headline)]
        if response.message:
            parts.append(Text(response.message))
        parts.append(table)
        return Panel(Group(*parts), border_style="green" if response.success else "red")

    def _model_unload(self, view: ModelUnloadView) -> tuple[str, RenderableType, str]:
        state = view.state
        if isinstance(state, mdl.Unloading):
            return "Unload Model", Spinner("dots", text=" Unloading model..."), "Ctrl+C: Quit"
        if isinstance(state, mdl.UnloadSuccess):
            response = state.response
            table = Table(expand=True)
            table.add_column("Shard")
            table.add_column("Result")
            table.add_column("Message")
            for status in response.shard_statuses:
                table.add_row(
                    status.instance,
                    "[green]ok[/]" if status.success else "[red]failed[/]",
                    status.message or "",
                )
            headline = "Model unloaded" if response.success else "Unload incomplete"
            body = Panel(Group(Text(headline, style="bold"), table), border_style="cyan")
            return "Unload Model", body, "Enter/Esc: Back"
        return "Unload Model", _error_panel(state.message), "Enter/Esc: Back"

    def _devices(self, view: DevicesView) -> tuple[str, RenderableType, str]:
        keys = "r: Refresh | Esc: Back"
        state = view.state
        if isinstance(state, Failed):
            return "Devices", _error_panel(state.message), keys
        if not isinstance(state, Loaded):
            return "Devices", Spinner("dots", text=" Discovering devices..."), keys
        table = Table(expand=True, border_style="cyan")
        for col in ("Instance", "Address", "gRPC port", "Flags"):
            table.add_column(col)
        for device in sorted_devices(state.value):
            flags = " ".join(
                flag
                for flag, on in (("[MANAGER]", device.is_manager), ("[BUSY]", device.is_busy))
                if on
            )
            table.add_row(device.instance, device.address(), str(device.shard_port), Text(flags))
        title = f"Devices ({len(state.value)})"
        return title, table, keys

    def _settings(self, view: SettingsView) -> tuple[str, RenderableType, str]:
        table = Table.grid(padding=(0, 2))
        table.add_column()
        table.add_column()
        cfg = self.app.temp_config
        for i, (name, label) in enumerate(SETTINGS_FIELDS):
            selected = i == view.selected
            value = view.buffer + "_" if selected and view.editing else cfg.read_setting(name)
            table.add_row(_selectable(f"{label:<20}", selected), Text(value))
        status_style = "red" if view.status_is_error else "green"
        body = Group(
            Text(f"Config file: {Config.current_location()}", style="dim"),
            Text(""),
            table,
            Text(""),
            Text(view.status, style=status_style),
        )
        keys = (
            "Enter: Apply | Esc: Cancel edit"
            if view.editing
            else "Up/Down: Select | Enter: Edit | s: Save | Esc: Back"
        )
        return "Settings", Panel(body, border_style="cyan"), keys

    def _developer(self, view: DeveloperView) -> tuple[str, RenderableType, str]:
        state = view.state
        title = "Developer"
        if isinstance(state, dev.DevMenu):
            table = Table.grid(padding=(0, 2))
            table.add_column()
            for i, (label, desc) in enumerate(dev.DEVELOPER_MENU_ITEMS):
                table.add_row(_selectable(f"{label} - {desc}", i == state.selected))
            return title, Panel(table, border_style="yellow"), "Enter: Select | Esc: Back"
        if isinstance(state, dev.ManualSelectingModel):
            body = Panel(
                self._model_list(state.models, state.selected),
                title="Select model for manual assignment",
                border_style="yellow",
            )
            return title, body, "Up/Down: Select | Enter: Continue | Esc: Back"
        if isinstance(state, dev.ManualFetchingShards):
            return title, Spinner("dots", text=" Discovering shards..."), "Ctrl+C: Quit"
        if isinstance(state, (dev.ManualAssigning, dev.ManualSubmitting)):
            return self._editor(state)
        if isinstance(state, dev.ManualLoading):
            return title, Spinner("dots", text=f" Loading {state.model}..."), "Ctrl+C: Quit"
        if isinstance(state, dev.ManualSuccess):
            return title, self._load_result(state.response), "Enter/Esc: Back"
        return title, _error_panel(state.message), "Enter/Esc: Back"

    def _editor(self, state) -> tuple[str, RenderableType, str]:
        editor = state.editor
        title = f"Manual assignment: {editor.model} ({editor.num_layers} layers)"
        table = Table(expand=True, border_style="yellow")
        for col in ("Shard", "Address", "Loaded", "Reported", "Assigned", "Layers"):
            table.add_column(col)
        for i, shard in enumerate(editor.shards):
            layers = editor.assignments.get(shard.instance, [])
            editing = editor.input_mode and i == editor.selected
            table.add_row(
                shard.instance,
                shard.device.address(),
                "yes" if shard.model_loaded else "no",
                format_layer_ranges(shard.assigned_layers),
                "yes" if editor.is_assigned(shard) else "no",
                editor.input_buffer + "_" if editing else format_layers(layers),
                style="bold black on yellow" if i == editor.selected else "",
            )
        missing = editor.missing_layers()
        summary = (
            Text("All layers assigned. Press 'c' to submit.", style="bold green")
            if not missing
            else Text(f"Unassigned layers: {format_layers(missing)}", style="yellow")
        )
        parts: List[RenderableType] = [table, summary]
        if editor.status:
            parts.append(Text(editor.status, style="cyan"))
        if isinstance(state, dev.ManualSubmitting):
            parts.append(Spinner("dots", text=" Submitting topology..."))
            return title, Group(*parts), "Ctrl+C: Quit"
        keys = (
            "Enter: Apply | Esc: Cancel | digits , - allowed"
            if editor.input_mode
            else "Up/Down: Select | Enter: Edit | Del: Clear | c: Submit | Esc: Back"
        )
        return title, Group(*parts), keys

    # --- loop -------------------------------------------------------------------

    async def run(self) -> None:
        """Alternate between waiting briefly for a key and a tick plus redraw."""
        app = self.app
        try:
            with KeyReader() as keys:
                with Live(
                    self.render(),
                    console=self.console,
                    screen=True,
                    auto_refresh=False,
                ) as live:
                    while app.running:
                        key = await keys.read(timeout=POLL_INTERVAL)
                        if key is not None:
                            app.handle_key(key)
                        if not app.running:
                            break
                        await app.tick()
                        live.update(self.render(), refresh=True)
        finally:
            app.close_chat()
            tui_logger.removeHandler(self.log_handler)
