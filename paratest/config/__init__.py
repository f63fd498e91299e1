"""
Configuration dataclasses and constants.
"""

from paratest.config.config import (
    ExtrinsicConfig,
    HarnessConfig,
    NodeConfig,
    ParachainConfig,
    TimingConfig,
)
from paratest.config.constants import NodeRole, RpcMethod

__all__ = [
    # config.py
    "HarnessConfig",
    "NodeConfig",
    "ParachainConfig",
    "ExtrinsicConfig",
    "TimingConfig",
    # constants.py
    "NodeRole",
    "RpcMethod",
]
