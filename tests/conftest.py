"""
Shared fixtures.

The gateway's backend calls are coroutines; tests drive them with
asyncio.run (see tests/support.py) so no async test plugin is needed.
"""

import pytest

from src.core.storage.events import RecordingEventSink
from src.core.storage.gateway import ObjectGateway
from src.infrastructure.storage.client import MockStorageBackend

from .support import FIXED_TS


@pytest.fixture
def backend() -> MockStorageBackend:
    return MockStorageBackend()


@pytest.fixture
def events() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def gateway(backend, events) -> ObjectGateway:
    """Gateway over the mock backend with a frozen clock."""
    return ObjectGateway(
        backend=backend,
        events=events,
        clock=lambda: FIXED_TS,
    )
