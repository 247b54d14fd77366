"""Shared fixtures for the monitoring test suite."""

from collections.abc import Iterator

import pytest

from adapters.memory import InMemoryMonitoringRepository
from news2.config import AppConfig, get_config
from news2.services.events import AlertEvent, AlertEventBus
from news2.services.monitoring import MonitoringService


@pytest.fixture(autouse=True)
def clear_config_cache() -> Iterator[None]:
    get_config.cache_clear()
    yield
    get_config.cache_clear()


@pytest.fixture
def repository() -> InMemoryMonitoringRepository:
    return InMemoryMonitoringRepository()


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig()


@pytest.fixture
def event_bus() -> AlertEventBus:
    return AlertEventBus()


@pytest.fixture
def received_events(event_bus: AlertEventBus) -> list[AlertEvent]:
    """Events delivered to a subscriber of ``event_bus``."""
    received: list[AlertEvent] = []
    event_bus.subscribe(received.append)
    return received


@pytest.fixture
def service(
    repository: InMemoryMonitoringRepository, app_config: AppConfig, event_bus: AlertEventBus
) -> MonitoringService:
    return MonitoringService(repository, app_config, event_bus)
