"""Shared fixtures."""

import pytest

from garmin_session.services.connect import ConnectSession
from tests.support import FakeTransport


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def session(transport: FakeTransport) -> ConnectSession:
    return ConnectSession(domain="com", transport=transport)
