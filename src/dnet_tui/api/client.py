"""HTTP client for the dnet API server and shard health endpoints.

Every call opens its own ``httpx.AsyncClient`` so that a client swapped in
after a settings save never shares a connection pool with one in flight.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from dnet_tui.config import Config
from dnet_tui.utils.logger import logger

from .errors import ApiConnectionError, ApiError, ApiResponseError, ApiStatusError
from .models import (
    ChatRequest,
    DeviceProperties,
    DevicesResponse,
    LoadModelRequest,
    LoadModelResponse,
    ModelListResponse,
    ModelObject,
    PrepareTopologyManualRequest,
    PrepareTopologyRequest,
    ShardHealth,
    ShardInfo,
    TopologyInfo,
    UnloadModelResponse,
)

HEALTH_TIMEOUT = 2.0
DEFAULT_TIMEOUT = 10.0
# topology preparation profiles every shard; model load streams weights
LONG_TIMEOUT = 600.0

M = TypeVar("M", bound=BaseModel)


def _detail(response: httpx.Response) -> str:
    """Best-effort error text: FastAPI ``detail`` if present, else raw body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return response.text


class ApiClient:
    """Async collaborator for everything the dashboard asks of the cluster."""

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self.base_url = f"http://{host}:{port}"

    @classmethod
    def from_config(cls, config: Config) -> "ApiClient":
        return cls(config.api_host, config.api_port)

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def _get(self, url: str, timeout: float = DEFAULT_TIMEOUT) -> httpx.Response:
        try:
            async with httpx.AsyncClient() as client:
                return await client.get(url, timeout=timeout)
        except httpx.TransportError as e:
            raise ApiConnectionError(f"GET {url}: {e}") from e

    async def _post(
        self, url: str, body: Optional[dict] = None, timeout: float = DEFAULT_TIMEOUT
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient() as client:
                return await client.post(url, json=body, timeout=timeout)
        except httpx.TransportError as e:
            raise ApiConnectionError(f"POST {url}: {e}") from e

    @staticmethod
    def _parse(response: httpx.Response, model: Type[M]) -> M:
        if not response.is_success:
            raise ApiStatusError(_detail(response), status_code=response.status_code)
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ApiResponseError(
                f"Unexpected response body: {e}",
                status_code=response.status_code,
            ) from e

    async def is_healthy(self) -> bool:
        """True when the API server answers its health check with 2xx."""
        try:
            response = await self._get(self.url("/health"), timeout=HEALTH_TIMEOUT)
        except ApiConnectionError:
            return False
        return response.is_success

    async def get_models(self) -> List[ModelObject]:
        response = await self._get(self.url("/v1/models"))
        return self._parse(response, ModelListResponse).data

    async def get_devices(self) -> Dict[str, DeviceProperties]:
        response = await self._get(self.url("/v1/devices"))
        return self._parse(response, DevicesResponse).devices

    async def get_topology(self) -> Optional[TopologyInfo]:
        """Current topology, or None if the server has none configured."""
        response = await self._get(self.url("/v1/topology"))
        if response.status_code in (400, 404):
            logger.debug("No topology on server: %s", _detail(response))
            return None
        return self._parse(response, TopologyInfo)

    async def prepare_topology(self, req: PrepareTopologyRequest) -> TopologyInfo:
        logger.info("Preparing topology for %s", req.model)
        response = await self._post(
            self.url("/v1/prepare_topology"), req.model_dump(), timeout=LONG_TIMEOUT
        )
        return self._parse(response, TopologyInfo)

    async def prepare_topology_manual(
        self, req: PrepareTopologyManualRequest
    ) -> TopologyInfo:
        logger.info(
            "Submitting manual topology for %s across %d shards",
            req.model,
            len(req.devices),
        )
        response = await self._post(
            self.url("/v1/prepare_topology_manual"),
            req.model_dump(),
            timeout=LONG_TIMEOUT,
        )
        return self._parse(response, TopologyInfo)

    async def load_model(self, req: LoadModelRequest) -> LoadModelResponse:
        logger.info("Loading model %s", req.model)
        response = await self._post(
            self.url("/v1/load_model"), req.model_dump(), timeout=LONG_TIMEOUT
        )
        result = self._parse(response, LoadModelResponse)
        for status in result.failed_shards:
            logger.warning(
                "Shard %s failed to load: %s", status.instance, status.message
            )
        return result

    async def unload_model(self) -> UnloadModelResponse:
        logger.info("Unloading model")
        response = await self._post(self.url("/v1/unload_model"), timeout=LONG_TIMEOUT)
        return self._parse(response, UnloadModelResponse)

    async def get_shard_health(self, device: DeviceProperties) -> ShardHealth:
        response = await self._get(
            f"http://{device.local_ip}:{device.server_port}/health",
            timeout=HEALTH_TIMEOUT,
        )
        return self._parse(response, ShardHealth)

    async def fetch_shards(self) -> List[ShardInfo]:
        """Non-manager devices with their self-reported load state.

        Health checks run in parallel; a shard whose check fails is reported
        as not loaded with no layers.
        """
        devices = await self.get_devices()
        shard_list = [d for d in devices.values() if not d.is_manager]
        results = await asyncio.gather(
            *(self.get_shard_health(d) for d in shard_list), return_exceptions=True
        )

        shards: List[ShardInfo] = []
        for device, result in zip(shard_list, results):
            if isinstance(result, BaseException):
                logger.warning("Health check failed for %s: %s", device.instance, result)
                shards.append(ShardInfo(device=device))
                continue
            shards.append(
                ShardInfo(
                    device=device,
                    model_loaded=result.model_loaded,
                    assigned_layers=result.assigned_layers,
                )
            )
        shards.sort(key=lambda s: s.instance)
        return shards

    async def stream_chat(self, req: ChatRequest) -> AsyncIterator[bytes]:
        """POST a streaming chat completion and yield raw body chunks.

        Raises:
            ApiStatusError: on a non-2xx answer, carrying the response body.
            ApiConnectionError: if the server cannot be reached or drops.
            ApiError: for any other httpx failure while reading the body.
        """
        url = self.url("/v1/chat/completions")
        try:
            async with httpx.AsyncClient() as client:
                async with client.stream(
                    "POST", url, json=req.model_dump(exclude_none=True), timeout=None
                ) as response:
                    if not response.is_success:
                        body = await response.aread()
                        raise ApiStatusError(
                            body.decode("utf-8", errors="replace"),
                            status_code=response.status_code,
                        )
                    async for chunk in response.aiter_bytes():
                        yield chunk
        except httpx.TransportError as e:
            raise ApiConnectionError(f"POST {url}: {e}") from e
        except httpx.HTTPError as e:
            raise ApiError(f"POST {url}: {e}") from e
