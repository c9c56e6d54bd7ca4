"""Observer contract shared by addresses, stores, credentials and resources."""

import weakref
from collections.abc import Callable
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Any

import structlog


logger = structlog.get_logger()

Handler = Callable[[str, Any], None]


@dataclass
class _Subscription:
    pattern: str
    handler: Handler
    once: bool = False

    def matches(self, name: str) -> bool:
        if self.pattern == name:
            return True
        return "*" in self.pattern and fnmatchcase(name, self.pattern)


@dataclass
class _Relay:
    # Weak, so a relay never keeps an abandoned target alive
    target: "weakref.ref[EventEmitter]"
    prefix: str


class EventEmitter:
    """Named event emitter with wildcard subscriptions.

    Event names are dot separated (``update.port``, ``header.create``).
    Patterns may contain ``*`` wildcards, so ``update.*`` observes every
    component update and ``*`` observes everything.

    Handlers are called synchronously, in subscription order, with the
    event name and payload. Exceptions raised by a handler propagate to
    the caller of :meth:`emit`.
    """

    def __init__(self) -> None:
        """Initialize an emitter with no subscriptions."""
        self._subscriptions: list[_Subscription] = []
        self._relays: list[_Relay] = []

    def on(self, pattern: str, handler: Handler) -> Handler:
        """Subscribe a handler to events matching a pattern.

        Args:
            pattern: Event name or wildcard pattern.
            handler: Callable receiving ``(name, payload)``.

        Returns:
            The handler, so it can later be passed to :meth:`off`.
        """
        self._subscriptions.append(_Subscription(pattern, handler))
        return handler

    def once(self, pattern: str, handler: Handler) -> Handler:
        """Subscribe a handler that is removed after its first call."""
        self._subscriptions.append(_Subscription(pattern, handler, once=True))
        return handler

    def off(self, pattern: str, handler: Handler | None = None) -> None:
        """Remove subscriptions for a pattern.

        Args:
            pattern: Pattern used when subscribing.
            handler: Specific handler to remove. All handlers registered
                for the pattern are removed when omitted.
        """
        self._subscriptions = [
            sub
            for sub in self._subscriptions
            if not (
                sub.pattern == pattern and (handler is None or sub.handler is handler)
            )
        ]

    def listener_count(self, name: str | None = None) -> int:
        """Count subscriptions, optionally only those matching an event name."""
        if name is None:
            return len(self._subscriptions)
        return sum(1 for sub in self._subscriptions if sub.matches(name))

    def emit(self, name: str, payload: Any = None) -> None:
        """Fire an event.

        Args:
            name: Event name.
            payload: Arbitrary payload passed to every matching handler.
        """
        for sub in list(self._subscriptions):
            if not sub.matches(name):
                continue
            if sub.once:
                self._subscriptions.remove(sub)
            sub.handler(name, payload)

        dead = False
        for relay in list(self._relays):
            target = relay.target()
            if target is None:
                dead = True
                continue
            relayed = f"{relay.prefix}.{name}" if relay.prefix else name
            target.emit(relayed, payload)
        if dead:
            self._relays = [relay for relay in self._relays if relay.target() is not None]

    def relay(self, target: "EventEmitter", prefix: str = "") -> None:
        """Forward every future event from this emitter onto another.

        Forwarding is one way: events emitted on ``target`` never come
        back to this emitter. The target is held weakly, so forwarding
        ends once it is garbage collected.

        Args:
            target: Emitter receiving the forwarded events.
            prefix: Optional name prefix, producing ``<prefix>.<name>``.
        """
        if target is self:
            raise ValueError("An emitter cannot relay events to itself")
        self._relays.append(_Relay(weakref.ref(target), prefix))
        logger.debug("event_relay_attached", prefix=prefix or None)

    def unrelay(self, target: "EventEmitter") -> None:
        """Stop forwarding events to a target emitter."""
        self._relays = [
            relay
            for relay in self._relays
            if relay.target() is not None and relay.target() is not target
        ]
