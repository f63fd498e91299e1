"""
Parachain registration environment.

The relay validators and the collator are started by the test through
`paratest.TestOrchestrator`, since their lifetimes are part of what is being
tested. This environment only checks that the inputs the scenario needs exist.
"""

import os
import shutil

import flexitest

from paratest.config import HarnessConfig


class ParachainEnvConfig(flexitest.EnvConfig):
    def init(self, ectx: flexitest.EnvContext) -> flexitest.LiveEnv:
        cfg = HarnessConfig.from_env()

        if shutil.which(cfg.binary) is None:
            raise RuntimeError(
                f"collator binary '{cfg.binary}' not found, set PARATEST_COLLATOR_BIN"
            )
        if not os.path.isfile(cfg.parachain.wasm_path):
            raise RuntimeError(
                f"parachain runtime '{cfg.parachain.wasm_path}' not found, "
                "set PARATEST_PARACHAIN_WASM"
            )

        return flexitest.LiveEnv({})
