"""
Shared FastAPI dependencies
"""
from gyaan.database import SessionLocal
from gyaan.services.metrics_service import MetricsService, metrics_service
from gyaan.services.persistence import SqlPersistence
from gyaan.services.tracker_registry import TrackerRegistry, tracker_registry
from gyaan.utils.clock import Clock, local_now


def get_store() -> SqlPersistence:
    """Persistence client for the request"""
    return SqlPersistence(SessionLocal)


def get_metrics_service() -> MetricsService:
    return metrics_service


def get_registry() -> TrackerRegistry:
    return tracker_registry


def get_clock() -> Clock:
    """Source of "now" for calendar bucketing"""
    return local_now
