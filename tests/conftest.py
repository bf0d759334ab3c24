from __future__ import annotations

import pytest
from aiohttp import ClientSession

from tests.utils import RecordingSleep


@pytest.fixture
async def http_session():
    session = ClientSession()
    yield session
    await session.close()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()
