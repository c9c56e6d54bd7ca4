"""Crypto capability consumed by the request engine.

No provider ships with the engine. Hosts supply an object implementing
``CryptoProvider``; each method may return its result directly or as an
awaitable.
"""

import inspect
from collections.abc import Awaitable
from typing import Any, Protocol, TypeVar, runtime_checkable


T = TypeVar("T")


@runtime_checkable
class CryptoProvider(Protocol):
    """Encryption, decryption, signing and verification of bodies."""

    def encrypt(self, body: str | bytes, key: Any) -> "str | Awaitable[str]":
        """Encrypt a body, returning base64 text."""
        ...

    def decrypt(self, key: Any, body: str | bytes) -> "str | Awaitable[str]":
        """Decrypt a body, returning plain text."""
        ...

    def sign(self, body: str | bytes, key: Any) -> "str | Awaitable[str]":
        """Produce a signature for a body."""
        ...

    def verify(
        self, body: str | bytes, signature: str, key: Any
    ) -> "bool | Awaitable[bool]":
        """Check a body against a signature."""
        ...

    def encryption_algorithm(self, key: Any) -> str:
        """Name of the algorithm used with a key, for Content-Encoding."""
        ...


async def resolve(result: "T | Awaitable[T]") -> T:
    """Await a crypto result if the provider returned an awaitable."""
    if inspect.isawaitable(result):
        return await result
    return result  # type: ignore[return-value]
