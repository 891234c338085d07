import asyncio
import pytest
import pytest_asyncio
import uvicorn
from azure.storage.blob.aio import ContainerClient
from azkit.server.api import app, lease_manager

ACCOUNT = "devstoreaccount1"
CONTAINER = "test-container"
CONTAINER_PATH = f"{ACCOUNT}/{CONTAINER}"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def emulator():
    lease_manager.reset()
    yield lease_manager
    lease_manager.reset()


@pytest_asyncio.fixture
async def emulator_url(emulator):
    # The SDK's aiohttp transport needs a real socket, so serve on a free port.
    config = uvicorn.Config(app, host="127.0.0.1", port=0, log_level="error")
    server = uvicorn.Server(config)
    server_task = asyncio.create_task(server.serve())
    while not server.started:
        if server_task.done():
            await server_task
            raise RuntimeError("Emulator exited before it started serving")
        await asyncio.sleep(0.01)

    port = server.servers[0].sockets[0].getsockname()[1]
    yield f"http://127.0.0.1:{port}/{ACCOUNT}"

    server.should_exit = True
    await server_task


@pytest_asyncio.fixture
async def container(emulator_url):
    async with ContainerClient.from_container_url(
        f"{emulator_url}/{CONTAINER}"
    ) as client:
        yield client
