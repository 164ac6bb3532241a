"""Pytest fixtures for testing.

All tests are network-isolated - socket connections are blocked by default.
"""

from __future__ import annotations

import socket
from datetime import date

import pytest

from dispatch_ranker.config import RankingConfig
from dispatch_ranker.types import (
    Coordinate,
    NewJobRequest,
    ServiceZone,
    Technician,
)
from tests.support.builders import MONDAY, TARGET
from tests.support.errors import NetworkIsolationError

# =============================================================================
# Network Isolation - Block all socket connections in tests
# =============================================================================

_original_socket_connect = socket.socket.connect


def _blocked_socket_connect(self: socket.socket, *args: object, **kwargs: object) -> None:
    """Raise an error if any test tries to make a real network connection."""
    raise NetworkIsolationError(str(args))


@pytest.fixture(autouse=True)
def block_network_access(monkeypatch: pytest.MonkeyPatch) -> None:
    """Block all network access in tests.

    This fixture runs automatically for all tests. Tests that need HTTP should use
    FakeHttpClient or MagicMock(spec=requests.Session).
    """
    monkeypatch.setattr(socket.socket, "connect", _blocked_socket_connect)


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep credentials from the developer's shell out of tests."""
    for name in ("MAPBOX_TOKEN", "REASONING_API_KEY", "STANDARD_START_TIMES"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def target() -> Coordinate:
    return TARGET


@pytest.fixture
def today() -> date:
    return MONDAY


@pytest.fixture
def ranking_config() -> RankingConfig:
    return RankingConfig()


@pytest.fixture
def square_zone() -> ServiceZone:
    """A zone roughly 0.2 degrees square around the target."""
    ring = (
        Coordinate(39.66, -86.26),
        Coordinate(39.86, -86.26),
        Coordinate(39.86, -86.06),
        Coordinate(39.66, -86.06),
        Coordinate(39.66, -86.26),
    )
    return ServiceZone(id="zone-central", name="Central", color="#3366ff", boundary=(ring,))


@pytest.fixture
def technicians() -> list[Technician]:
    return [
        Technician(id="tech-a", name="Alice", home_coordinate=Coordinate(39.7684, -86.1000)),
        Technician(id="tech-b", name="Bob", home_coordinate=Coordinate(39.7684, -86.2162)),
        Technician(id="tech-c", name="Carla", home_coordinate=Coordinate(39.7684, -86.1000)),
        Technician(id="tech-d", name="Dev", home_coordinate=None),
    ]


@pytest.fixture
def new_job_request() -> NewJobRequest:
    return NewJobRequest(
        target=TARGET,
        requested_service_names=("Carpet Cleaning",),
        duration_minutes=90,
        address="100 Monument Cir, Indianapolis, IN",
    )

