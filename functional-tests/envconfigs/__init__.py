"""Environment configurations for functional tests."""

from envconfigs.parachain import ParachainEnvConfig

__all__ = [
    "ParachainEnvConfig",
]
