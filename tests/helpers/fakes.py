"""Deterministic stand-ins for crypto providers and timers."""

from collections.abc import Callable
from typing import Any

from src.features.core.errors import CryptoError


class FakeCrypto:
    """Reversible ``enc:`` prefix "cipher" with key-derived signatures."""

    def __init__(self, fail_decrypt: bool = False) -> None:
        self.fail_decrypt = fail_decrypt
        self.decrypt_keys: list[Any] = []

    def encrypt(self, body: str | bytes, key: Any) -> str:
        text = body.decode() if isinstance(body, bytes) else body
        return f"enc:{text}"

    def decrypt(self, key: Any, body: str | bytes) -> str:
        self.decrypt_keys.append(key)
        if self.fail_decrypt:
            raise CryptoError("wrong key")
        text = body.decode() if isinstance(body, bytes) else body
        return text.removeprefix("enc:")

    def sign(self, body: str | bytes, key: Any) -> str:
        return f"sig-{key}"

    def verify(self, body: str | bytes, signature: str, key: Any) -> bool:
        return signature == f"sig-{key}"

    def encryption_algorithm(self, key: Any) -> str:
        return "aes-256-gcm"


class AsyncFakeCrypto(FakeCrypto):
    """FakeCrypto returning awaitables from encrypt and verify."""

    async def encrypt(self, body: str | bytes, key: Any) -> str:  # type: ignore[override]
        return super().encrypt(body, key)

    async def verify(  # type: ignore[override]
        self, body: str | bytes, signature: str, key: Any
    ) -> bool:
        return super().verify(body, signature, key)


class FakeTimer:
    """Timer that only runs when fired by the test."""

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        if not self.cancelled:
            self.callback()


class FakeScheduler:
    """Scheduler recording every timer instead of starting threads."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [timer for timer in self.timers if not timer.cancelled]
