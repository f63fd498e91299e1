"""
Shared fixtures and fakes for the unit tests.
"""

import logging
import socket
from collections.abc import Iterator

import pytest

from paratest.rpc_types.substrate import Header, NetworkState, RuntimeVersion

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


def block_hash(n: int) -> str:
    """A well-formed 32-byte hash derived from `n`."""
    return "0x" + n.to_bytes(32, "big").hex()


GENESIS_HASH = block_hash(0xAA)

# Well-known development accounts, as printed by `subkey inspect //Alice`
ALICE_SR25519 = "d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d"
BOB_SR25519 = "8eaf04151687736326c9fea17e25fc5287613693c912909cb226aa4794f26a48"
ALICE_ED25519 = "88dc3417d5058ec4b4503e0c12ea1a0a89be200fe98922423d4334014fa6b0ee"


class FakeTransport:
    """Replies with queued response bodies and records the payloads sent."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.sent: list[dict] = []

    async def send(self, payload):
        self.sent.append(payload)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeNode:
    """
    In-memory stand-in for `SubstrateRpc`.

    `heads` is the sequence of best block hashes returned by successive
    `block_hash(None)` calls; the last one repeats once exhausted.
    """

    def __init__(
        self,
        name: str = "node",
        heads: list[str] | None = None,
        peer_id: str = "12D3KooWFake",
        spec_version: int = 7,
        block_number: int = 42,
    ):
        self.name = name
        self.heads = list(heads or [block_hash(1)])
        self.peer_id = peer_id
        self.spec_version = spec_version
        self.block_number = block_number
        self.head_reads = 0
        self.submitted: list[str] = []
        self.closed = False

    async def submit_extrinsic(self, extrinsic: str) -> str:
        self.submitted.append(extrinsic)
        return block_hash(0xEE)

    async def current_block_hash(self) -> str:
        return self.heads[-1]

    async def header(self, hash_: str) -> Header | None:
        return Header.model_validate(
            {
                "parentHash": block_hash(0),
                "number": hex(self.block_number),
                "stateRoot": block_hash(2),
                "extrinsicsRoot": block_hash(3),
                "digest": {"logs": []},
            }
        )

    async def block_hash(self, index: int | None = None) -> str | None:
        if index == 0:
            return GENESIS_HASH
        if index is not None:
            return None
        head = self.heads[min(self.head_reads, len(self.heads) - 1)]
        self.head_reads += 1
        return head

    async def runtime_version(self) -> RuntimeVersion:
        return RuntimeVersion.model_validate(
            {
                "specName": "polkadot",
                "implName": "parity-polkadot",
                "authoringVersion": 0,
                "specVersion": self.spec_version,
                "implVersion": 0,
                "apis": [],
            }
        )

    async def network_state(self) -> NetworkState:
        return NetworkState.model_validate({"peerId": self.peer_id})

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def listening_socket() -> Iterator[socket.socket]:
    """A TCP socket accepting connections on an ephemeral localhost port."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(8)
    try:
        yield sock
    finally:
        sock.close()


@pytest.fixture
def free_port() -> int:
    """A localhost port nothing listens on (at the time of the call)."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
