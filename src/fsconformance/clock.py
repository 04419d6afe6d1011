# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Injectable time sources.

Two time domains are used:

- **Monotonic time** (float seconds): run and case durations.
- **Wall-clock time** (UTC datetime): modification times kept by
  ``MemoryStore``.

Tests inject :class:`FakeClock` to make timestamps deterministic::

    clock = FakeClock()
    store = MemoryStore(clock=clock)
    clock.advance(60)
"""

from __future__ import annotations

import threading
import time as _time
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Final, Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Monotonic plus wall-clock time."""

    def monotonic(self) -> float:
        """Return monotonic time in seconds."""
        ...

    def utcnow(self) -> datetime:
        """Return current UTC datetime (timezone-aware)."""
        ...


@dataclass(frozen=True, slots=True)
class SystemClock:
    """Clock backed by ``time.monotonic()`` and ``datetime.now(UTC)``."""

    def monotonic(self) -> float:
        return _time.monotonic()

    def utcnow(self) -> datetime:
        return datetime.now(UTC)


SYSTEM_CLOCK: Final[Clock] = SystemClock()
"""Default clock for every component that takes a ``clock`` argument."""


@dataclass
class FakeClock:
    """Controllable clock for deterministic tests.

    Both domains advance together through :meth:`advance`. Thread-safe.
    """

    _monotonic: float = 0.0
    _wall: datetime = field(default_factory=lambda: datetime(2024, 1, 1, tzinfo=UTC))
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def monotonic(self) -> float:
        with self._lock:
            return self._monotonic

    def utcnow(self) -> datetime:
        with self._lock:
            return self._wall

    def advance(self, seconds: float) -> None:
        """Advance both clocks by ``seconds``.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            msg = "Cannot advance time by negative seconds"
            raise ValueError(msg)
        with self._lock:
            self._monotonic += seconds
            self._wall += timedelta(seconds=seconds)


def elapsed_ms(clock: Clock, start: float) -> int:
    """Milliseconds between ``start`` and ``clock.monotonic()``."""
    return int((clock.monotonic() - start) * 1000)


__all__ = [
    "SYSTEM_CLOCK",
    "Clock",
    "FakeClock",
    "SystemClock",
    "elapsed_ms",
]
