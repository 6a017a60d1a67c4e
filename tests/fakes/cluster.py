"""JSON payload builders mimicking the dnet API server and shards."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

API = "http://127.0.0.1:8080"


def device(
    instance: str,
    ip: str,
    server_port: int = 8081,
    shard_port: int = 58081,
    is_manager: bool = False,
    is_busy: bool = False,
) -> Dict[str, Any]:
    return {
        "instance": instance,
        "local_ip": ip,
        "server_port": server_port,
        "shard_port": shard_port,
        "is_manager": is_manager,
        "is_busy": is_busy,
    }


def devices_payload(*devs: Dict[str, Any]) -> Dict[str, Any]:
    return {"devices": {d["instance"]: d for d in devs}}


def health_payload(
    instance: str, layers: Optional[List[int]] = None, loaded: bool = False
) -> Dict[str, Any]:
    return {
        "status": "ok",
        "running": True,
        "model_loaded": loaded,
        "model_path": "Qwen/Qwen3-4B-MLX-4bit" if loaded else None,
        "assigned_layers": layers or [],
        "queue_size": 0,
        "grpc_port": 58081,
        "http_port": 8081,
        "instance": instance,
    }


def topology_payload(model: Optional[str] = "Qwen/Qwen3-4B-MLX-4bit") -> Dict[str, Any]:
    s1 = device("S1", "10.0.0.1")
    s2 = device("S2", "10.0.0.2")
    return {
        "model": model,
        "kv_bits": "8bit",
        "num_layers": 36,
        "devices": [s1, s2],
        "assignments": [
            {
                "instance": "S1",
                "layers": [list(range(0, 18))],
                "next_instance": "S2",
                "window_size": 18,
                "residency_size": 18,
            },
            {
                "instance": "S2",
                "layers": [list(range(18, 36))],
                "next_instance": "S1",
                "window_size": 18,
                "residency_size": 18,
            },
        ],
        "solution": None,
    }
