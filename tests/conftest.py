"""Shared fixtures for the pipe service fake."""
from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from agentpipes.langbase.client import AsyncPipeClient
from fakes import FakePipeService


@pytest.fixture
def service() -> FakePipeService:
    return FakePipeService()


@pytest_asyncio.fixture
async def pipe_client(service):
    """The loop's shared client, wired to the fake service."""
    client = AsyncPipeClient(api_key="test-key",
                             base_url="https://api.test",
                             transport=httpx.MockTransport(service.handler))
    yield client
    await client.aclose()


@pytest.fixture(autouse=True)
def _reset_client_registry():
    yield
    AsyncPipeClient.delete_all_instances()
