from .repository import InMemoryMonitoringRepository

__all__ = ["InMemoryMonitoringRepository"]
