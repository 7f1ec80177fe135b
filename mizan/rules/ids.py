"""Injectable identifier and clock generation."""

from __future__ import annotations

import secrets
import string
import threading
from datetime import datetime, timezone
from typing import Callable


Clock = Callable[[], datetime]

_ALPHABET = string.digits + string.ascii_lowercase


def utc_now() -> datetime:
    """Get the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_base36(value: int, width: int = 0) -> str:
    """Encode a non-negative integer in lowercase base 36."""
    if value < 0:
        raise ValueError("value must be non-negative")
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ALPHABET[rem])
    return "".join(reversed(digits)).rjust(width, "0") or "0"


def random_suffix(length: int = 4) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


class IdFactory:
    """Generates time-ordered identifiers such as ``r-0lq3x9k2a000k3f9``.

    An id is the prefix, the clock's milliseconds and a per-millisecond
    sequence (both fixed-width base 36, so ids sort by creation time), and
    a random suffix. Pass a fixed ``clock`` and ``suffix`` for deterministic ids.
    """

    def __init__(self, clock: Clock | None = None, suffix: Callable[[], str] | None = None):
        self.clock = clock or utc_now
        self._suffix = suffix or random_suffix
        self._lock = threading.Lock()
        self._last_millis = -1
        self._sequence = 0

    def new_id(self, prefix: str) -> str:
        millis = int(self.clock().timestamp() * 1000)
        with self._lock:
            if millis <= self._last_millis:
                millis = self._last_millis
                self._sequence += 1
            else:
                self._last_millis = millis
                self._sequence = 0
            sequence = self._sequence
        return f"{prefix}-{to_base36(millis, 9)}{to_base36(sequence, 3)}{self._suffix()}"

    def rule_id(self) -> str:
        return self.new_id("r")

    def decision_id(self) -> str:
        return self.new_id("d")
