"""
Polling a chain head until enough distinct blocks have been seen.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from paratest.rpc import ChainApi

logger = logging.getLogger(__name__)


class BlockPoller:
    """
    Accumulates distinct head hashes until `target` of them have been observed.

    Reading the same head twice is not progress, so polling faster than the
    chain produces blocks can't complete early. There is no iteration cap, the
    caller bounds the wait.
    """

    def __init__(
        self,
        chain: ChainApi,
        target: int,
        interval: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if target < 1:
            raise ValueError(f"target must be positive, got {target}")
        self.chain = chain
        self.target = target
        self.interval = interval
        self._sleep = sleep
        self.seen: set[str] = set()

    async def poll_once(self) -> bool:
        """Read the head once. Returns True if it was a block not seen before."""
        head = await self.chain.block_hash(None)
        if head is None or head in self.seen:
            return False
        self.seen.add(head)
        logger.info(f"new parachain block: {head}")
        return True

    async def run(self) -> set[str]:
        while True:
            await self.poll_once()
            if len(self.seen) >= self.target:
                return set(self.seen)
            await self._sleep(self.interval)
