"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for openstack_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from openstack_mock import MockNetworkingClient, MockNetworkState  # noqa: E402

from secgroup_operator.events import EventRecorder  # noqa: E402


@pytest.fixture
def state() -> MockNetworkState:
    return MockNetworkState()


@pytest.fixture
def client(state: MockNetworkState) -> MockNetworkingClient:
    return MockNetworkingClient(state)


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()

