import pytest
import pytest_asyncio

from mock_backend import client_for, create_app


@pytest.fixture
def backend():
    """Fresh in-memory Museo API for each test"""
    return create_app()


@pytest_asyncio.fixture
async def client(backend):
    async with client_for(backend) as c:
        yield c
