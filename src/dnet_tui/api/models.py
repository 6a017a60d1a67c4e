"""Wire models for the dnet API server and shard endpoints."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from dnet_tui.config import KVBits


class DeviceProperties(BaseModel):
    """A device as reported by discovery through ``/v1/devices``."""

    instance: str = Field(..., description="Device name")
    local_ip: str = Field(..., description="Reachable IP/host for the device")
    server_port: int = Field(..., description="Device HTTP port")
    shard_port: int = Field(..., description="Device gRPC port (ring service)")
    is_manager: bool = Field(default=False, description="API/manager node")
    is_busy: bool = Field(default=False, description="Device is busy")

    def address(self) -> str:
        return f"{self.local_ip}:{self.server_port}"


class DevicesResponse(BaseModel):
    devices: Dict[str, DeviceProperties] = Field(
        default_factory=dict, description="Discovered devices by instance name"
    )


class LayerAssignment(BaseModel):
    """Layer assignment for a single device in ring topology."""

    instance: str = Field(..., description="Target device name")
    layers: List[List[int]] = Field(
        ..., description="Layer indices per round (k sublists)"
    )
    next_instance: Optional[str] = Field(
        None, description="Next device name in ring"
    )
    window_size: int = Field(..., description="Window size for this device")
    residency_size: int = Field(
        ..., description="Number of resident layers on GPU any given time"
    )


class TopologyInfo(BaseModel):
    """Topology currently stored on the API server."""

    model: Optional[str] = Field(
        None, description="Loaded model name or HuggingFace repo ID"
    )
    kv_bits: KVBits = Field(
        default="8bit", description="KV cache quantization used by solver and shards"
    )
    num_layers: int = Field(..., description="Total number of layers in model")
    devices: List[DeviceProperties] = Field(
        default_factory=list, description="Devices (in solver order)"
    )
    assignments: List[LayerAssignment] = Field(
        default_factory=list, description="Layer assignments per device"
    )
    solution: Optional[Dict[str, Any]] = Field(
        None, description="Solver result details"
    )

    def assignment_for(self, instance: str) -> Optional[LayerAssignment]:
        for assignment in self.assignments:
            if assignment.instance == instance:
                return assignment
        return None


class ShardHealth(BaseModel):
    """Response from a shard's ``/health`` endpoint."""

    status: str = Field(..., description="Health status (e.g., 'ok')")
    running: bool = Field(default=False, description="Whether the node is running")
    model_loaded: bool = Field(
        default=False, description="Whether a model is currently loaded"
    )
    model_path: Optional[str] = Field(
        None, description="Path to currently loaded model"
    )
    assigned_layers: List[int] = Field(
        default_factory=list, description="Layers assigned to this shard"
    )
    queue_size: int = Field(default=0, description="Current activation queue size")
    grpc_port: int = Field(default=0, description="gRPC server port")
    http_port: int = Field(default=0, description="HTTP server port")
    instance: Optional[str] = Field(default=None, description="Shard name")


class ShardInfo(BaseModel):
    """A non-manager device plus its self-reported load state."""

    device: DeviceProperties
    model_loaded: bool = False
    assigned_layers: List[int] = Field(default_factory=list)

    @property
    def instance(self) -> str:
        return self.device.instance


class ModelObject(BaseModel):
    id: str
    created: int = 0
    object: str = "model"
    owned_by: str = "local"


class ModelListResponse(BaseModel):
    object: str = "list"
    data: List[ModelObject] = Field(default_factory=list)


class PrepareTopologyRequest(BaseModel):
    """Automatic placement: discovery, profiling and solver run server-side."""

    model: str = Field(..., description="Model name or HuggingFace repo ID")
    kv_bits: KVBits = Field(default="8bit", description="KV cache quantization")
    seq_len: int = Field(default=512, description="Sequence length to optimize for")
    max_batch_exp: int = Field(
        default=2, description="Max batch size as power of 2 exponent"
    )


class ManualDevice(BaseModel):
    """Device entry for a hand-built topology (no discovery)."""

    instance: str = Field(..., description="Name of the device")
    local_ip: str = Field(..., description="Reachable IP/host for the device")
    server_port: int = Field(..., description="Device HTTP port (for /load_model)")
    shard_port: int = Field(..., description="Device gRPC port (ring service)")


class PrepareTopologyManualRequest(BaseModel):
    """Operator-authored topology that bypasses the solver."""

    model: str = Field(..., description="Model name or HuggingFace repo ID")
    kv_bits: KVBits = Field(default="8bit", description="KV cache quantization")
    seq_len: int = Field(default=512, description="Sequence length")
    max_batch_size: int = Field(default=4, description="Max batch size")
    devices: List[ManualDevice] = Field(..., description="Manual device endpoints")
    assignments: List[LayerAssignment] = Field(
        ..., description="Layer assignments per device"
    )
    num_layers: int = Field(..., description="Total number of layers")


class LoadModelRequest(BaseModel):
    model: Optional[str] = Field(default=None, description="Model to load")
    kv_bits: KVBits = Field(default="8bit", description="KV cache quantization")
    seq_len: int = Field(default=512, description="Sequence length")


class ShardLoadStatus(BaseModel):
    """Load status for a single shard."""

    instance: str = Field(..., description="Shard name")
    success: bool = Field(..., description="Whether loading succeeded")
    layers_loaded: Optional[List[int]] = Field(
        default=None, description="Layers loaded on this shard"
    )
    message: Optional[str] = Field(default=None, description="Status message")


class LoadModelResponse(BaseModel):
    model: str = Field(..., description="Model that was requested")
    success: bool = Field(..., description="True only if every shard loaded")
    shard_statuses: List[ShardLoadStatus] = Field(default_factory=list)
    message: Optional[str] = Field(default=None, description="Overall message")

    @property
    def failed_shards(self) -> List[ShardLoadStatus]:
        return [s for s in self.shard_statuses if not s.success]


class ShardUnloadStatus(BaseModel):
    instance: str
    success: bool
    message: Optional[str] = None


class UnloadModelResponse(BaseModel):
    success: bool
    shard_statuses: List[ShardUnloadStatus] = Field(default_factory=list)
    message: Optional[str] = None


Role = Literal["system", "user", "assistant"]


class ApiMessage(BaseModel):
    role: Role
    content: str


class ChatRequest(BaseModel):
    model: str
    messages: List[ApiMessage]
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    stream: bool = True
