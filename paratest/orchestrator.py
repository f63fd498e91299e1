"""
End-to-end parachain registration scenario.

Sequence: start alice -> wait for RPC port -> start bob -> wait for RPC port
-> export genesis state -> build, sign and submit the registration extrinsic
-> start the collator peering with alice and bob -> wait for RPC port -> poll
until the collator has produced `target_blocks` distinct blocks.

The whole sequence races a single global timer.
"""

import asyncio
import contextlib
import logging
import os
import tempfile
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass
from typing import Any

from paratest.config import HarnessConfig, NodeConfig
from paratest.config.constants import TIMEOUT_REASON
from paratest.errors import PortAlreadyInUse, RpcFailure, TimeoutExceeded
from paratest.extrinsic import TransactionBuilder
from paratest.keyring import Keypair
from paratest.nodes import (
    collator_spec,
    export_genesis_state,
    multiaddr,
    read_parachain_code,
    relay_node_spec,
)
from paratest.poller import BlockPoller
from paratest.process import ChildProcess, ProcessSupervisor, SpawnSpec
from paratest.rpc import SubstrateRpc
from paratest.wait import TcpAddress, tcp_port_is_open, wait_for_tcp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RaceOutcome:
    """Result of `race`: the workflow's result, or the reason it timed out."""

    completed: bool
    result: Any = None
    reason: str | None = None

    @property
    def timed_out(self) -> bool:
        return not self.completed


async def race(workflow: Coroutine[Any, Any, Any], timeout: float) -> RaceOutcome:
    """
    Run `workflow` against a timer, first to finish wins.

    The loser is cancelled and awaited, so the workflow's cleanup (process
    teardown) has finished by the time this returns. An exception raised by
    the workflow propagates.
    """
    work = asyncio.ensure_future(workflow)
    timer = asyncio.ensure_future(asyncio.sleep(timeout))
    try:
        done, _ = await asyncio.wait({work, timer}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (work, timer):
            if not task.done():
                task.cancel()
        await asyncio.gather(work, timer, return_exceptions=True)

    if work in done:
        return RaceOutcome(completed=True, result=work.result())
    return RaceOutcome(completed=False, reason=TIMEOUT_REASON)


RpcFactory = Callable[[ChildProcess, NodeConfig], SubstrateRpc]


class TestOrchestrator:
    """
    Drives the three-node parachain registration scenario.

    Collaborators can be swapped for tests: the process supervisor, the RPC
    client factory, the port waiter and the genesis state exporter.

    Usage:
        blocks = asyncio.run(TestOrchestrator(HarnessConfig()).check())
    """

    # Not a pytest test class
    __test__ = False

    def __init__(
        self,
        cfg: HarnessConfig,
        supervisor: ProcessSupervisor | None = None,
        rpc_factory: RpcFactory | None = None,
        port_waiter: Callable[[TcpAddress], Awaitable[None]] | None = None,
        genesis_exporter: Callable[[HarnessConfig], bytes] = export_genesis_state,
        workdir: str | None = None,
    ):
        self.cfg = cfg
        self.supervisor = supervisor or ProcessSupervisor(
            termination_retries=cfg.timing.termination_retries,
            termination_backoff=cfg.timing.termination_backoff,
        )
        self.rpc_factory = rpc_factory or self._http_rpc
        self.port_waiter = port_waiter or self._wait_for_port
        self.genesis_exporter = genesis_exporter
        self.workdir = workdir

    def address(self, node: NodeConfig) -> TcpAddress:
        return TcpAddress(self.cfg.host, node.rpc_port)

    def precheck(self) -> None:
        """
        Refuse to run if the validators' RPC ports are already taken.

        Raises:
            PortAlreadyInUse: Before anything is spawned.
        """
        for node in (self.cfg.alice, self.cfg.bob):
            address = self.address(node)
            if tcp_port_is_open(address):
                raise PortAlreadyInUse(address)

    async def _wait_for_port(self, address: TcpAddress) -> None:
        await wait_for_tcp(address, interval=self.cfg.timing.port_poll_interval)

    def _http_rpc(self, proc: ChildProcess, node: NodeConfig) -> SubstrateRpc:
        rpc = SubstrateRpc.over_http(
            self.cfg.rpc_url(node),
            name=node.name,
            timeout=self.cfg.timing.rpc_timeout,
        )

        def _status_check(method: str):
            if proc.has_exited():
                logger.warning(f"process '{proc.name}' crashed before call to {method}")
                raise RpcFailure(f"process '{proc.name}' crashed")

        rpc.client.set_pre_call_hook(_status_check)
        return rpc

    async def _start_node(
        self,
        stack: contextlib.ExitStack,
        node: NodeConfig,
        spec: SpawnSpec,
    ) -> SubstrateRpc:
        proc = stack.enter_context(self.supervisor.supervise(node.name, spec))
        await self.port_waiter(self.address(node))
        rpc = self.rpc_factory(proc, node)
        stack.callback(rpc.close)
        return rpc

    def _base_path(self, root: str, node: NodeConfig) -> str:
        path = os.path.join(root, node.name)
        os.makedirs(path, exist_ok=True)
        return path

    async def workflow(self) -> set[str]:
        """Run the scenario. Returns the distinct collator block hashes observed."""
        cfg = self.cfg
        with contextlib.ExitStack() as stack:
            if self.workdir is None:
                root = stack.enter_context(tempfile.TemporaryDirectory(prefix="paratest-"))
            else:
                root = self.workdir

            alice_rpc = await self._start_node(
                stack, cfg.alice, relay_node_spec(cfg, cfg.alice, self._base_path(root, cfg.alice))
            )
            bob_rpc = await self._start_node(
                stack, cfg.bob, relay_node_spec(cfg, cfg.bob, self._base_path(root, cfg.bob))
            )

            genesis_state = await asyncio.to_thread(self.genesis_exporter, cfg)

            alice_id = (await alice_rpc.network_state()).peer_id
            bob_id = (await bob_rpc.network_state()).peer_id
            logger.info(f"relay peers: alice={alice_id} bob={bob_id}")

            signer = Keypair.from_uri(cfg.extrinsic.signer, cfg.extrinsic.crypto_type)
            builder = TransactionBuilder(alice_rpc, signer, cfg.extrinsic)
            context = await builder.fetch_context()
            code = read_parachain_code(cfg)
            tx = builder.register_parachain(context, cfg.parachain, code, genesis_state)
            tx_hash = await alice_rpc.submit_extrinsic(tx.to_hex())
            logger.info(f"submitted parachain {cfg.parachain.para_id} registration: {tx_hash}")

            bootnodes = [
                multiaddr(cfg.host, cfg.alice.p2p_port, alice_id),
                multiaddr(cfg.host, cfg.bob.p2p_port, bob_id),
            ]
            collator_rpc = await self._start_node(
                stack,
                cfg.collator,
                collator_spec(cfg, self._base_path(root, cfg.collator), bootnodes),
            )

            poller = BlockPoller(
                collator_rpc, cfg.target_blocks, interval=cfg.timing.block_poll_interval
            )
            return await poller.run()

    async def run(self) -> RaceOutcome:
        self.precheck()
        outcome = await race(self.workflow(), self.cfg.timing.global_timeout)
        if outcome.timed_out:
            logger.error(outcome.reason)
        else:
            logger.info(f"observed {len(outcome.result)} parachain blocks")
        return outcome

    async def check(self) -> set[str]:
        """
        Like `run`, but a timeout is raised.

        Raises:
            TimeoutExceeded: If the global timer fired first.
        """
        outcome = await self.run()
        if outcome.timed_out:
            raise TimeoutExceeded(outcome.reason)
        return outcome.result
