"""Clients and resources built on the request engine."""

from src.features.resource.config import CallConfig, ResourceConfig
from src.features.resource.scheduler import (
    EventLoopScheduler,
    Scheduler,
    ThreadingScheduler,
    TimerHandle,
)
from src.features.resource.client import JSON_ACCEPT, HttpClient
from src.features.resource.resource import Resource, expiration_time, unique_token
from src.features.resource.route import RouteView


__all__ = [
    # Configuration
    "CallConfig",
    "ResourceConfig",
    # Timers
    "EventLoopScheduler",
    "Scheduler",
    "ThreadingScheduler",
    "TimerHandle",
    # Clients
    "JSON_ACCEPT",
    "HttpClient",
    "Resource",
    "RouteView",
    "expiration_time",
    "unique_token",
]
