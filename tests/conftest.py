import itertools

import pytest
from fastapi.testclient import TestClient

from backend import SessionRegistry
from protocol import RoomProtocolHandler


def make_clock():
    """Deterministic clock: every call returns the next second of 2024-01-01."""
    counter = itertools.count()
    return lambda: f"2024-01-01T00:00:{next(counter):02d}.000Z"


@pytest.fixture
def registry():
    return SessionRegistry(clock=make_clock())


@pytest.fixture
def handler(registry):
    return RoomProtocolHandler(registry)


@pytest.fixture
def client(registry):
    from app import create_app

    # The context manager keeps one event loop for every websocket the test opens
    with TestClient(create_app(registry)) as test_client:
        yield test_client
