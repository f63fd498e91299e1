"""Tests for TCP reachability waiting."""

import asyncio
import socket

import pytest

from paratest.errors import ConnectPending
from paratest.wait import TcpAddress, tcp_port_is_open, try_connect, wait_for_tcp


def test_address_str() -> None:
    assert str(TcpAddress("127.0.0.1", 9933)) == "127.0.0.1:9933"


def test_port_is_open(listening_socket: socket.socket) -> None:
    port = listening_socket.getsockname()[1]
    assert tcp_port_is_open(TcpAddress("127.0.0.1", port))


def test_port_is_closed(free_port: int) -> None:
    assert not tcp_port_is_open(TcpAddress("127.0.0.1", free_port))


@pytest.mark.asyncio
async def test_try_connect_refused(free_port: int) -> None:
    with pytest.raises(ConnectPending) as exc:
        await try_connect(TcpAddress("127.0.0.1", free_port))
    assert exc.value.address == TcpAddress("127.0.0.1", free_port)


@pytest.mark.asyncio
async def test_returns_immediately_when_open(listening_socket: socket.socket) -> None:
    port = listening_socket.getsockname()[1]
    sleeps: list[float] = []

    async def sleep(seconds: float) -> None:
        sleeps.append(seconds)

    await wait_for_tcp(TcpAddress("127.0.0.1", port), sleep=sleep)
    assert sleeps == []


@pytest.mark.asyncio
async def test_waits_until_port_opens(free_port: int) -> None:
    address = TcpAddress("127.0.0.1", free_port)
    sleeps: list[float] = []
    server: asyncio.AbstractServer | None = None

    async def sleep(seconds: float) -> None:
        nonlocal server
        sleeps.append(seconds)
        # Open the port after the second failed attempt
        if len(sleeps) == 2:
            server = await asyncio.start_server(lambda r, w: w.close(), "127.0.0.1", free_port)
        await asyncio.sleep(0)

    try:
        await asyncio.wait_for(wait_for_tcp(address, interval=2.0, sleep=sleep), timeout=10)
    finally:
        if server is not None:
            server.close()
            await server.wait_closed()

    assert sleeps == [2.0, 2.0]


@pytest.mark.asyncio
async def test_wait_yields_to_other_tasks(free_port: int) -> None:
    """The waiter suspends cooperatively, so a concurrent timer can cancel it."""
    waiter = asyncio.create_task(
        wait_for_tcp(TcpAddress("127.0.0.1", free_port), interval=0.05)
    )
    await asyncio.sleep(0.2)
    assert not waiter.done()

    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter
