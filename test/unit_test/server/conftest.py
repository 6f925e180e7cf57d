from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from toolpilot.agent_core.approvals import ConfirmationChannel
from toolpilot.server.main import create_app


@pytest.fixture
def channel() -> ConfirmationChannel:
    return ConfirmationChannel(timeout_seconds=5)


@pytest.fixture
def app(channel: ConfirmationChannel):
    return create_app(channel=channel)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as ac:
        yield ac
