"""Pytest configuration and fixtures."""

import pytest

from tests.shared_utilities import FakeClock, RecordingSleep


@pytest.fixture
def fake_clock() -> FakeClock:
    """Create a controllable clock."""
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Create a sleep stub that never waits."""
    return RecordingSleep()
