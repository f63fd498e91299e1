"""
Command lines for the node binary.

The binary is an external collaborator: this module only knows the flags it
accepts and the format of its `export-genesis-state` output.
"""

import logging
import subprocess

from paratest.config import HarnessConfig, NodeConfig, NodeRole
from paratest.errors import CommandFailed, DecodeFailure, SpawnFailure
from paratest.process import SpawnSpec

logger = logging.getLogger(__name__)


def multiaddr(host: str, p2p_port: int, peer_id: str) -> str:
    return f"/ip4/{host}/tcp/{p2p_port}/p2p/{peer_id}"


def relay_node_spec(cfg: HarnessConfig, node: NodeConfig, base_path: str) -> SpawnSpec:
    """A relay-chain validator (`--alice`, `--bob`) with its RPC exposed."""
    if node.role is None:
        raise ValueError(f"relay node '{node.name}' needs a role")
    role = NodeRole(node.role)

    # fmt: off
    cmd = [
        cfg.binary,
        "polkadot",
        f"--chain={cfg.relay_chain_spec}",
        "--base-path", base_path,
        f"--{role}",
        "--unsafe-rpc-expose",
    ]
    # fmt: on
    rpc_port = node.rpc_port_flag()
    if rpc_port is not None:
        cmd.append(rpc_port)
    return SpawnSpec(cmd)


def collator_spec(cfg: HarnessConfig, base_path: str, bootnodes: list[str]) -> SpawnSpec:
    """
    The parachain collator.

    Arguments after `--` go to the embedded relay-chain node, which is where
    the bootnodes belong.
    """
    node = cfg.collator
    # fmt: off
    cmd = [
        cfg.binary,
        "--base-path", base_path,
        "--unsafe-rpc-expose",
    ]
    # fmt: on
    rpc_port = node.rpc_port_flag()
    if rpc_port is not None:
        cmd.append(rpc_port)
    cmd.append("--")
    cmd.extend(f"--bootnodes={addr}" for addr in bootnodes)
    return SpawnSpec(cmd)


def decode_genesis_state(output: bytes) -> bytes:
    """
    Decode the `0x`-prefixed hex printed by `export-genesis-state`.

    Surrounding whitespace and one pair of quotes are stripped first.

    Raises:
        DecodeFailure: If the `0x` wrapper is missing or the hex is invalid.
    """
    raw = output.strip()
    if len(raw) >= 2 and raw[:1] == raw[-1:] and raw[:1] in (b'"', b"'"):
        raw = raw[1:-1]
    if not raw.startswith(b"0x"):
        raise DecodeFailure(f"genesis state is not 0x-prefixed: {output[:32]!r}")
    try:
        return bytes.fromhex(raw[2:].decode("ascii"))
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeFailure(f"genesis state is not valid hex: {e}") from e


def export_genesis_state(cfg: HarnessConfig) -> bytes:
    """
    Run `export-genesis-state` and decode its output.

    Raises:
        SpawnFailure: If the binary can't be executed.
        CommandFailed: If it exits with a non-zero status.
        DecodeFailure: If the output is malformed.
    """
    cmd = [cfg.binary, "export-genesis-state"]
    try:
        result = subprocess.run(cmd, capture_output=True)
    except OSError as e:
        raise SpawnFailure("export-genesis-state", cmd, str(e)) from e

    if result.returncode != 0:
        raise CommandFailed(cmd, result.returncode, result.stderr.decode(errors="replace"))

    state = decode_genesis_state(result.stdout)
    logger.info(f"exported genesis state ({len(state)} bytes)")
    return state


def read_parachain_code(cfg: HarnessConfig) -> bytes:
    with open(cfg.parachain.wasm_path, "rb") as f:
        return f.read()
