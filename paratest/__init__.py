"""
Parachain registration functional test harness.
Provides process supervision, RPC clients, extrinsic signing and waiting utilities.
"""

from .config import HarnessConfig
from .errors import (
    DecodeFailure,
    HarnessError,
    PortAlreadyInUse,
    RpcError,
    RpcFailure,
    SpawnFailure,
    TimeoutExceeded,
)
from .orchestrator import RaceOutcome, TestOrchestrator, race
from .process import ProcessSupervisor, SpawnSpec
from .rpc import JsonRpcClient, SubstrateRpc
from .wait import TcpAddress, wait_for_tcp

__all__ = [
    "HarnessConfig",
    "TestOrchestrator",
    "RaceOutcome",
    "race",
    "ProcessSupervisor",
    "SpawnSpec",
    "JsonRpcClient",
    "SubstrateRpc",
    "TcpAddress",
    "wait_for_tcp",
    "HarnessError",
    "SpawnFailure",
    "PortAlreadyInUse",
    "RpcFailure",
    "RpcError",
    "DecodeFailure",
    "TimeoutExceeded",
]
