"""
Chronologically ordered child keys.

Keys are 20 characters: 8 encode the creation time in milliseconds, 12 are
random. Keys created within the same millisecond reuse the previous random
part incremented by one, so string order always equals creation order.
"""

import secrets
import threading
import time

PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"


class PushIdGenerator:
    """Generates lexicographically increasing keys."""

    def __init__(self, clock=None):
        self._clock = clock or (lambda: int(time.time() * 1000))
        self._last_time = -1
        self._last_random = [0] * 12
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            now = self._clock()
            # A clock step backwards keeps the previous time so order holds.
            if now <= self._last_time:
                self._increment_random()
            else:
                self._last_time = now
                self._last_random = [secrets.randbelow(64) for _ in range(12)]

            time_chars = []
            remaining = self._last_time
            for _ in range(8):
                time_chars.append(PUSH_CHARS[remaining % 64])
                remaining //= 64
            if remaining:
                raise ValueError("Timestamp out of range for push id")

            return "".join(reversed(time_chars)) + "".join(
                PUSH_CHARS[index] for index in self._last_random
            )

    def _increment_random(self) -> None:
        index = 11
        while index >= 0 and self._last_random[index] == 63:
            self._last_random[index] = 0
            index -= 1
        if index < 0:
            # Random part exhausted within one millisecond; borrow the next one.
            self._last_time += 1
            self._last_random = [secrets.randbelow(64) for _ in range(12)]
            return
        self._last_random[index] += 1


generate_push_id = PushIdGenerator()
