"""
Waiting utilities for TCP reachability.
"""

import asyncio
import contextlib
import logging
import socket
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from paratest.errors import ConnectPending

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TcpAddress:
    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


def tcp_port_is_open(address: TcpAddress, timeout: float = 1.0) -> bool:
    """One-shot blocking probe. True if something accepts connections on `address`."""
    try:
        with socket.create_connection((address.host, address.port), timeout=timeout):
            return True
    except OSError:
        return False


async def try_connect(address: TcpAddress) -> None:
    """
    Open and immediately close a connection to `address`.

    Raises:
        ConnectPending: If the connection is refused or fails.
    """
    try:
        _, writer = await asyncio.open_connection(address.host, address.port)
    except OSError as e:
        raise ConnectPending(address, e) from e

    writer.close()
    with contextlib.suppress(OSError):
        await writer.wait_closed()


async def wait_for_tcp(
    address: TcpAddress,
    interval: float = 2.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    """
    Wait until `address` accepts TCP connections.

    There is no timeout here, callers bound the wait from outside.
    """
    while True:
        try:
            await try_connect(address)
            return
        except ConnectPending as e:
            logger.info(f"Waiting for {address} to be up ({e.cause})...")
            await sleep(interval)
