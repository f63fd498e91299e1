"""
Configuration dataclasses for the harness.
"""

import os
from dataclasses import MISSING, Field, asdict, dataclass, field, fields, is_dataclass, replace
from pathlib import Path
from typing import Any

import toml

from paratest.config.constants import (
    ALICE_P2P_PORT,
    ALICE_RPC_PORT,
    BOB_P2P_PORT,
    BOB_RPC_PORT,
    COLLATOR_RPC_PORT,
    DEFAULT_COLLATOR_BIN,
    DEFAULT_PARACHAIN_WASM,
    DEFAULT_RELAY_CHAIN_SPEC,
    DEFAULT_RPC_PORT,
    ENV_COLLATOR_BIN,
    ENV_HARNESS_CONFIG,
    ENV_PARACHAIN_WASM,
    LOCALHOST,
)


@dataclass
class NodeConfig:
    name: str = field(default="")
    role: str | None = field(default=None)  # "alice", "bob" or None for the collator
    rpc_port: int = field(default=0)
    p2p_port: int = field(default=0)
    # When False, `--rpc-port` is left out as long as `rpc_port` is the binary's default.
    override_rpc_port: bool = field(default=True)

    def rpc_port_flag(self) -> str | None:
        if self.override_rpc_port or self.rpc_port != DEFAULT_RPC_PORT:
            return f"--rpc-port={self.rpc_port}"
        return None


@dataclass
class ParachainConfig:
    para_id: int = field(default=100)
    scheduling: str = field(default="always")  # "always" | "dynamic"
    wasm_path: str = field(default=DEFAULT_PARACHAIN_WASM)


@dataclass
class ExtrinsicConfig:
    signer: str = field(default="//Alice")
    # "sr25519" (relay chain dev accounts) or "ed25519"
    crypto_type: str = field(default="sr25519")
    nonce: int = field(default=0)
    tip: int = field(default=0)
    # `BlockHashCount` of the relay runtime, used to derive the mortality period.
    block_hash_count: int = field(default=2400)
    # Chain specific (pallet index, call index) pairs.
    sudo_call_index: list[int] = field(default_factory=lambda: [17, 0])
    register_para_call_index: list[int] = field(default_factory=lambda: [21, 0])
    # Address prefix of the runtime's lookup source (0xff = full account id).
    address_prefix: int | None = field(default=0xFF)


@dataclass
class TimingConfig:
    global_timeout: float = field(default=600.0)
    port_poll_interval: float = field(default=2.0)
    block_poll_interval: float = field(default=2.0)
    termination_retries: int = field(default=30)
    termination_backoff: float = field(default=1.0)
    rpc_timeout: float = field(default=30.0)


def _alice() -> NodeConfig:
    return NodeConfig(
        name="alice",
        role="alice",
        rpc_port=ALICE_RPC_PORT,
        p2p_port=ALICE_P2P_PORT,
        override_rpc_port=False,
    )


def _bob() -> NodeConfig:
    return NodeConfig(name="bob", role="bob", rpc_port=BOB_RPC_PORT, p2p_port=BOB_P2P_PORT)


def _collator() -> NodeConfig:
    return NodeConfig(name="cumulus", rpc_port=COLLATOR_RPC_PORT)


@dataclass
class HarnessConfig:
    binary: str = field(default_factory=lambda: os.getenv(ENV_COLLATOR_BIN, DEFAULT_COLLATOR_BIN))
    relay_chain_spec: str = field(default=DEFAULT_RELAY_CHAIN_SPEC)
    host: str = field(default=LOCALHOST)
    target_blocks: int = field(default=4)
    alice: NodeConfig = field(default_factory=_alice)
    bob: NodeConfig = field(default_factory=_bob)
    collator: NodeConfig = field(default_factory=_collator)
    parachain: ParachainConfig = field(default_factory=ParachainConfig)
    extrinsic: ExtrinsicConfig = field(default_factory=ExtrinsicConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)

    def __post_init__(self):
        wasm = os.getenv(ENV_PARACHAIN_WASM)
        if wasm:
            self.parachain.wasm_path = wasm
        if self.target_blocks < 1:
            raise ValueError(f"target_blocks must be positive, got {self.target_blocks}")
        if self.parachain.scheduling not in ("always", "dynamic"):
            raise ValueError(f"unknown scheduling {self.parachain.scheduling!r}")
        if self.extrinsic.crypto_type not in ("sr25519", "ed25519"):
            raise ValueError(f"unknown crypto_type {self.extrinsic.crypto_type!r}")

    def rpc_url(self, node: NodeConfig) -> str:
        return f"http://{self.host}:{node.rpc_port}"

    def as_toml_string(self) -> str:
        d = asdict(self)
        # toml has no null, drop unset optionals
        d = _drop_none(d)
        return toml.dumps(d)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HarnessConfig":
        return _build(cls, data)

    @classmethod
    def from_toml_file(cls, path: str | Path) -> "HarnessConfig":
        with open(path) as f:
            return cls.from_dict(toml.load(f))

    @classmethod
    def from_env(cls) -> "HarnessConfig":
        """Load the file named by `PARATEST_CONFIG`, or the defaults when unset."""
        path = os.getenv(ENV_HARNESS_CONFIG)
        if path:
            return cls.from_toml_file(path)
        return cls()


def _drop_none(d: dict[str, Any]) -> dict[str, Any]:
    out = {}
    for k, v in d.items():
        if v is None:
            continue
        out[k] = _drop_none(v) if isinstance(v, dict) else v
    return out


def _default(f: Field) -> Any:
    if f.default_factory is not MISSING:
        return f.default_factory()
    return f.type()


def _build(cls, data: dict[str, Any], base=None):
    known = {f.name: f for f in fields(cls)}
    unknown = set(data) - set(known)
    if unknown:
        raise ValueError(f"unknown {cls.__name__} keys: {sorted(unknown)}")

    kwargs = {}
    for name, value in data.items():
        f = known[name]
        if is_dataclass(f.type) and isinstance(value, dict):
            # Partial tables only override the keys they name
            nested = getattr(base, name) if base is not None else _default(f)
            value = _build(f.type, value, nested)
        kwargs[name] = value
    if base is None:
        return cls(**kwargs)
    return replace(base, **kwargs)
