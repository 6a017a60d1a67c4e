"""Tests: ApiClient requests, response parsing and error mapping."""

import asyncio

import httpx
import pytest

from dnet_tui.api.client import ApiClient
from dnet_tui.api.errors import (
    CONNECTION_HINT,
    NO_TOPOLOGY_HINT,
    ApiConnectionError,
    ApiResponseError,
    ApiStatusError,
    describe_error,
)
from dnet_tui.api.models import LoadModelRequest, PrepareTopologyRequest
from tests.fakes import (
    API,
    FakeResponse,
    device,
    devices_payload,
    health_payload,
    topology_payload,
)

pytestmark = [pytest.mark.api]


def _api() -> ApiClient:
    return ApiClient("127.0.0.1", 8080)


def test_is_healthy(fake_http):
    fake_http.get_map[f"{API}/health"] = lambda: FakeResponse(200, {"status": "ok"})
    assert asyncio.run(_api().is_healthy()) is True

    fake_http.get_map[f"{API}/health"] = lambda: FakeResponse(503)
    assert asyncio.run(_api().is_healthy()) is False

    fake_http.get_map[f"{API}/health"] = httpx.ConnectError("refused")
    assert asyncio.run(_api().is_healthy()) is False


def test_get_topology_none_when_not_configured(fake_http):
    fake_http.get_map[f"{API}/v1/topology"] = lambda: FakeResponse(
        404, {"detail": "No topology configured"}
    )
    assert asyncio.run(_api().get_topology()) is None


def test_get_topology_parses(fake_http):
    fake_http.get_map[f"{API}/v1/topology"] = lambda: FakeResponse(200, topology_payload())
    topo = asyncio.run(_api().get_topology())
    assert topo.model == "Qwen/Qwen3-4B-MLX-4bit"
    assert [d.instance for d in topo.devices] == ["S1", "S2"]
    assert topo.assignment_for("S2").next_instance == "S1"


def test_status_error_carries_detail(fake_http):
    fake_http.get_map[f"{API}/v1/devices"] = lambda: FakeResponse(
        500, {"detail": "discovery crashed"}
    )
    with pytest.raises(ApiStatusError) as ei:
        asyncio.run(_api().get_devices())
    assert ei.value.status_code == 500
    assert str(ei.value) == "500: discovery crashed"


def test_unreachable_server_raises_connection_error(fake_http):
    with pytest.raises(ApiConnectionError):
        asyncio.run(_api().get_devices())


def test_get_models(fake_http):
    fake_http.get_map[f"{API}/v1/models"] = lambda: FakeResponse(
        200, {"object": "list", "data": [{"id": "m1"}, {"id": "m2"}]}
    )
    assert [m.id for m in asyncio.run(_api().get_models())] == ["m1", "m2"]


def test_fetch_shards_skips_manager_and_degrades_failed_health(fake_http):
    fake_http.get_map[f"{API}/v1/devices"] = lambda: FakeResponse(
        200,
        devices_payload(
            device("api", "10.0.0.9", is_manager=True),
            device("S2", "10.0.0.2"),
            device("S1", "10.0.0.1"),
        ),
    )
    fake_http.get_map["http://10.0.0.1:8081/health"] = lambda: FakeResponse(
        200, health_payload("S1", layers=[0, 1, 2], loaded=True)
    )
    # S2 has no handler: its health check fails

    shards = asyncio.run(_api().fetch_shards())
    assert [s.instance for s in shards] == ["S1", "S2"]
    assert shards[0].model_loaded and shards[0].assigned_layers == [0, 1, 2]
    assert not shards[1].model_loaded and shards[1].assigned_layers == []


def test_prepare_and_load_post_config_fields(fake_http):
    fake_http.post_map[f"{API}/v1/prepare_topology"] = lambda body: FakeResponse(
        200, topology_payload(model=body["model"])
    )
    fake_http.post_map[f"{API}/v1/load_model"] = lambda body: FakeResponse(
        200,
        {
            "model": body["model"],
            "success": False,
            "shard_statuses": [
                {"instance": "S1", "success": True, "layers_loaded": [0, 1]},
                {"instance": "S2", "success": False, "message": "OOM"},
            ],
        },
    )
    api = _api()
    asyncio.run(
        api.prepare_topology(
            PrepareTopologyRequest(model="m", kv_bits="4bit", seq_len=1024, max_batch_exp=3)
        )
    )
    resp = asyncio.run(api.load_model(LoadModelRequest(model="m", kv_bits="4bit", seq_len=1024)))

    assert fake_http.posted(f"{API}/v1/prepare_topology") == [
        {"model": "m", "kv_bits": "4bit", "seq_len": 1024, "max_batch_exp": 3}
    ]
    assert fake_http.posted(f"{API}/v1/load_model") == [
        {"model": "m", "kv_bits": "4bit", "seq_len": 1024}
    ]
    assert [s.instance for s in resp.failed_shards] == ["S2"]


def test_malformed_body_is_response_error(fake_http):
    fake_http.get_map[f"{API}/v1/topology"] = lambda: FakeResponse(200, {"devices": 3})
    with pytest.raises(ApiResponseError) as ei:
        asyncio.run(_api().get_topology())
    assert "Unexpected response body" in ei.value.message


def test_describe_error():
    assert describe_error(ApiConnectionError("GET x: refused")) == CONNECTION_HINT
    assert describe_error(ApiStatusError("No topology configured", 400)) == NO_TOPOLOGY_HINT
    assert describe_error(ApiStatusError("Not Found", 404)) == NO_TOPOLOGY_HINT
    assert describe_error(RuntimeError("Connection reset by peer")) == CONNECTION_HINT
    assert describe_error(ApiStatusError("bad kv_bits", 422)) == "Error: 422: bad kv_bits"
