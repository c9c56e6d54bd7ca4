"""In-process event emission for mutable client objects."""

from src.features.events.emitter import EventEmitter, Handler


__all__ = [
    "EventEmitter",
    "Handler",
]
