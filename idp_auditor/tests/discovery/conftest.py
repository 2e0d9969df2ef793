import pytest


@pytest.fixture
def anyio_backend():
    # aiohttp (used by the HTTP metadata source and its test server) is asyncio-only.
    return "asyncio"
