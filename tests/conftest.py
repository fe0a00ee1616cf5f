import asyncio

import pytest

from greeter_server import SessionRegistry, start_listener, stop_listener


class FakeChannel:
    """Stands in for a websocket connection in session-level tests."""

    def __init__(self, error=None):
        self.sent = []
        self.close_calls = 0
        self.error = error

    async def send(self, message):
        if self.error is not None:
            raise self.error
        self.sent.append(message)

    async def close(self):
        self.close_calls += 1


async def wait_until(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
async def server(registry):
    server = await start_listener(0, "127.0.0.1", registry)
    yield server
    await stop_listener(server)


@pytest.fixture
def uri(server):
    port = server.sockets[0].getsockname()[1]
    return f"ws://127.0.0.1:{port}/"
