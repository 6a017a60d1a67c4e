"""Shared test fakes package.

Import convenience:
    from tests.fakes import FakeClient, FakeResponse, FakeClock, ...
"""

from .api import (
    FakeChatStream,
    FakeClient,
    FakeClock,
    FakeResponse,
    FakeStreamResponse,
    hang,
    sse,
)
from .cluster import (
    API,
    device,
    devices_payload,
    health_payload,
    topology_payload,
)

__all__ = [
    "API",
    "FakeChatStream",
    "FakeClient",
    "FakeClock",
    "FakeResponse",
    "FakeStreamResponse",
    "device",
    "devices_payload",
    "hang",
    "health_payload",
    "sse",
    "topology_payload",
]
