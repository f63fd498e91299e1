"""
JSON-RPC client for the node RPC endpoints.

The client is split in three layers:
- `Transport`: moves one JSON payload to the node and back (`HttpTransport`)
- `JsonRpcClient`: JSON-RPC 2.0 envelopes and error handling
- `SubstrateRpc`: one typed coroutine per remote method used by the harness
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Protocol, TypeVar

import requests
from pydantic import BaseModel, TypeAdapter, ValidationError

from paratest.config.constants import RpcMethod
from paratest.errors import RpcError, RpcFailure
from paratest.rpc_types.substrate import (
    HASH,
    OPTIONAL_HASH,
    Header,
    NetworkState,
    RuntimeVersion,
)

M = TypeVar("M", bound=BaseModel)


class Transport(Protocol):
    """Sends one JSON-RPC request payload and returns the decoded response body."""

    async def send(self, payload: dict[str, Any]) -> Any: ...


class HttpTransport:
    """
    HTTP transport backed by `requests`.

    The blocking request runs in a worker thread so the event loop keeps
    serving timers and other tasks while it is in flight.
    """

    def __init__(self, url: str, timeout: float = 30.0):
        self.url = url
        self.timeout = timeout
        self._session = requests.Session()

    def _post(self, payload: dict[str, Any]) -> Any:
        resp = self._session.post(self.url, json=payload, timeout=self.timeout)
        resp.raise_for_status()
        try:
            return resp.json()
        except ValueError as e:
            raise RpcFailure(f"Invalid JSON from {self.url}: {resp.text[:200]!r}") from e

    async def send(self, payload: dict[str, Any]) -> Any:
        try:
            return await asyncio.to_thread(self._post, payload)
        except requests.RequestException as e:
            raise RpcFailure(f"RPC request to {self.url} failed: {e}") from e

    def close(self) -> None:
        self._session.close()


class JsonRpcClient:
    """
    JSON-RPC 2.0 client over any `Transport`.

    Usage:
        rpc = JsonRpcClient(HttpTransport("http://127.0.0.1:9933"), name="alice")
        head = await rpc.call("chain_getFinalizedHead")
    """

    def __init__(self, transport: Transport, name: str | None = None):
        self.transport = transport
        self.name = name or getattr(transport, "url", "rpc")
        self.id_counter = 0
        self.logger = logging.getLogger(f"rpc.{self.name}")
        self.pre_call_hook: Callable[[str], None] = lambda _: None

    def set_pre_call_hook(self, hook: Callable[[str], None]):
        self.pre_call_hook = hook

    async def call(self, method: str, *params) -> Any:
        """
        Make a JSON-RPC call.

        Returns:
            The `result` member of the response

        Raises:
            RpcError: If the node reports an error
            RpcFailure: If the request fails or the response is malformed
        """
        self.pre_call_hook(method)
        self.id_counter += 1

        payload = {
            "jsonrpc": "2.0",
            "method": str(method),
            "params": list(params),
            "id": self.id_counter,
        }

        self.logger.debug(f"RPC call: {method}({params})")

        try:
            response = await self.transport.send(payload)
        except RpcFailure as e:
            self.logger.warning(f"RPC request failed: {e}")
            raise

        if not isinstance(response, dict):
            raise RpcFailure(f"Malformed response to {method}: {response!r}")

        if "error" in response:
            error = response.get("error") or {}
            self.logger.warning(f"RPC error: {error}")
            if not isinstance(error, dict):
                error = {"code": None, "message": str(error)}
            raise RpcError(error)

        if "result" not in response:
            raise RpcFailure(f"Response to {method} has neither result nor error: {response!r}")

        return response["result"]


def _parse(method: str, adapter: TypeAdapter, value: Any) -> Any:
    try:
        return adapter.validate_python(value)
    except ValidationError as e:
        raise RpcFailure(f"Unexpected result for {method}: {e}") from e


def _parse_model(method: str, model: type[M], value: Any) -> M:
    try:
        return model.model_validate(value)
    except ValidationError as e:
        raise RpcFailure(f"Unexpected result for {method}: {e}") from e


class AuthorApi(Protocol):
    async def submit_extrinsic(self, extrinsic: str) -> str: ...


class ChainApi(Protocol):
    async def current_block_hash(self) -> str: ...

    async def header(self, block_hash: str) -> Header | None: ...

    async def block_hash(self, index: int | None = None) -> str | None: ...


class StateApi(Protocol):
    async def runtime_version(self) -> RuntimeVersion: ...


class SystemApi(Protocol):
    async def network_state(self) -> NetworkState: ...


class SubstrateRpc:
    """
    Typed access to the remote methods the harness relies on.

    Implements `AuthorApi`, `ChainApi`, `StateApi` and `SystemApi`.
    """

    def __init__(self, client: JsonRpcClient):
        self.client = client

    @classmethod
    def over_http(cls, url: str, name: str | None = None, timeout: float = 30.0) -> "SubstrateRpc":
        return cls(JsonRpcClient(HttpTransport(url, timeout=timeout), name=name))

    @property
    def name(self) -> str:
        return self.client.name

    async def submit_extrinsic(self, extrinsic: str) -> str:
        """Submit a `0x`-prefixed hex encoded extrinsic, returns its hash."""
        method = RpcMethod.SubmitExtrinsic
        return _parse(method, HASH, await self.client.call(method, extrinsic))

    async def current_block_hash(self) -> str:
        """Hash of the finalized head."""
        method = RpcMethod.FinalizedHead
        return _parse(method, HASH, await self.client.call(method))

    async def header(self, block_hash: str) -> Header | None:
        method = RpcMethod.Header
        result = await self.client.call(method, block_hash)
        if result is None:
            return None
        return _parse_model(method, Header, result)

    async def block_hash(self, index: int | None = None) -> str | None:
        """Hash of block `index`, or of the best block when `index` is None."""
        method = RpcMethod.BlockHash
        return _parse(method, OPTIONAL_HASH, await self.client.call(method, index))

    async def runtime_version(self) -> RuntimeVersion:
        method = RpcMethod.RuntimeVersion
        return _parse_model(method, RuntimeVersion, await self.client.call(method))

    async def network_state(self) -> NetworkState:
        method = RpcMethod.NetworkState
        return _parse_model(method, NetworkState, await self.client.call(method))

    def close(self) -> None:
        close = getattr(self.client.transport, "close", None)
        if close is not None:
            close()
