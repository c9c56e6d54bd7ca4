"""Callback adaptation for awaitable results."""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar


T = TypeVar("T")

Callback = Callable[[BaseException | None, Any], Any]


async def deliver(operation: Awaitable[T], callback: Callback | None = None) -> T:
    """Await an operation and also report its outcome to a callback.

    The callback receives ``(None, result)`` on success and
    ``(error, None)`` on failure. The outcome is then returned or
    re-raised, so callers may use either channel or both.

    Args:
        operation: Awaitable producing the result.
        callback: Optional ``callback(error, result)``.

    Returns:
        The operation's result.
    """
    try:
        result = await operation
    except Exception as e:
        if callback is not None:
            callback(e, None)
        raise
    if callback is not None:
        callback(None, result)
    return result
