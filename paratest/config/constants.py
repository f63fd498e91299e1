"""
Constants used throughout the harness.
"""

from enum import Enum

LOCALHOST = "127.0.0.1"

# RPC port the node binary listens on when no `--rpc-port` is given.
DEFAULT_RPC_PORT = 9933

# RPC ports exposed by the relay validators and the collator.
ALICE_RPC_PORT = DEFAULT_RPC_PORT
BOB_RPC_PORT = 9934
COLLATOR_RPC_PORT = 9935

# P2P ports advertised in the collator's bootnode multiaddrs.
ALICE_P2P_PORT = 30333
BOB_P2P_PORT = 50666

DEFAULT_COLLATOR_BIN = "cumulus-test-parachain-collator"
DEFAULT_RELAY_CHAIN_SPEC = "res/polkadot_chainspec.json"
DEFAULT_PARACHAIN_WASM = (
    "target/release/wbuild/cumulus-test-parachain-runtime/"
    "cumulus_test_parachain_runtime.compact.wasm"
)

# Environment overrides for paths that depend on the local build.
ENV_COLLATOR_BIN = "PARATEST_COLLATOR_BIN"
ENV_PARACHAIN_WASM = "PARATEST_PARACHAIN_WASM"
# Optional toml file loaded by the end-to-end runner.
ENV_HARNESS_CONFIG = "PARATEST_CONFIG"

TIMEOUT_REASON = "the test took too long, maybe no parachain blocks have been produced"


class NodeRole(str, Enum):
    """
    Role flag passed to a relay-chain validator.

    Using str Enum allows direct use on the command line:
        cmd.append(f"--{NodeRole.Alice}")
    """

    Alice = "alice"
    Bob = "bob"

    def __str__(self) -> str:
        return self.value


class RpcMethod(str, Enum):
    """Remote methods used by the harness."""

    SubmitExtrinsic = "author_submitExtrinsic"
    FinalizedHead = "chain_getFinalizedHead"
    Header = "chain_getHeader"
    BlockHash = "chain_getBlockHash"
    RuntimeVersion = "state_getRuntimeVersion"
    NetworkState = "system_networkState"

    def __str__(self) -> str:
        return self.value
