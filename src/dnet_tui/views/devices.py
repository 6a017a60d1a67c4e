"""Discovered devices, refreshed on the configured interval."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from dnet_tui.api.errors import describe_error
from dnet_tui.api.models import DeviceProperties
from dnet_tui.jobs import BackgroundJob
from dnet_tui.keys import KEY_ESCAPE, Key

from .common import Failed, Fetch, Loaded, Loading

if TYPE_CHECKING:
    from dnet_tui.app import App


@dataclass
class DevicesView:
    state: Fetch[Dict[str, DeviceProperties]] = field(default_factory=Loading)
    job: Optional[BackgroundJob[Dict[str, DeviceProperties]]] = None
    last_refresh: Optional[float] = None

    def cancel_jobs(self) -> None:
        if self.job is not None:
            self.job.cancel()
            self.job = None


def _address_key(device: DeviceProperties) -> Tuple[int, int, str, int]:
    """Numeric order for IP literals, hostnames after them."""
    try:
        ip = ipaddress.ip_address(device.local_ip)
    except ValueError:
        return (1, 0, device.local_ip, device.server_port)
    return (0, int(ip), "", device.server_port)


def sorted_devices(devices: Dict[str, DeviceProperties]) -> List[DeviceProperties]:
    return sorted(devices.values(), key=_address_key)


def handle_input(app: "App", view: DevicesView, key: Key) -> None:
    if key.is_quit:
        app.quit()
    elif key.name == KEY_ESCAPE:
        app.to_menu()
    elif key.is_char and key.name.lower() == "r":
        view.last_refresh = None


async def tick(app: "App", view: DevicesView) -> None:
    if view.job is not None:
        outcome = view.job.poll()
        if outcome is None:
            return
        view.job = None
        if outcome.ok:
            view.state = Loaded(outcome.value or {})
        else:
            view.state = Failed(describe_error(outcome.error))
        return

    now = app.clock()
    due = (
        view.last_refresh is None
        or now - view.last_refresh >= app.config.devices_refresh_interval
    )
    if due:
        view.last_refresh = now
        view.job = BackgroundJob(app.api.get_devices(), name="devices")
