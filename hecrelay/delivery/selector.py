"""Destination selection strategies.

Selection reads health flags and the pool cursor only; it never performs
network I/O.  The strategy is chosen once at startup.
"""

from __future__ import annotations

import random
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

import structlog

from hecrelay.delivery.destination import Destination
from hecrelay.delivery.pool import DestinationPool

_log = structlog.get_logger(component="delivery.selector")


class DestinationSelector(ABC):
    """Picks the destination for the next batch, or None if none is usable."""

    strategy_name: str = ""

    @abstractmethod
    def select(self, pool: DestinationPool) -> Destination | None:
        """Return a healthy destination from *pool*, or None."""


class FirstAvailableSelector(DestinationSelector):
    """First healthy destination in configured order."""

    strategy_name = "first_available"

    def select(self, pool: DestinationPool) -> Destination | None:
        for destination in pool:
            if destination.is_healthy:
                return destination
        return None


class StickySelector(DestinationSelector):
    """Stay on the destination at the cursor.

    Returns None while that destination is unhealthy rather than moving
    on.  With a positive *ttl* the cursor advances one position for every
    full *ttl* period that has passed, including periods with no traffic.
    """

    strategy_name = "sticky"

    def __init__(self, ttl: float = 0.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._pinned_at = clock()

    def select(self, pool: DestinationPool) -> Destination | None:
        cursor = pool.cursor
        with cursor.lock:
            if self._ttl > 0:
                now = self._clock()
                periods = int((now - self._pinned_at) // self._ttl)
                if periods > 0:
                    cursor.advance(periods)
                    self._pinned_at += periods * self._ttl
                    _log.debug("sticky_cursor_rotated", position=cursor.position)
            destination = pool[cursor.position]
        return destination if destination.is_healthy else None


class RandomSelector(DestinationSelector):
    """Uniform choice among healthy destinations."""

    strategy_name = "random"

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def select(self, pool: DestinationPool) -> Destination | None:
        candidates = pool.healthy()
        if not candidates:
            return None
        return self._rng.choice(candidates)


class RoundRobinSelector(DestinationSelector):
    """Rotate through the pool, skipping unhealthy destinations for at most one lap."""

    strategy_name = "roundrobin"

    def select(self, pool: DestinationPool) -> Destination | None:
        cursor = pool.cursor
        size = len(pool)
        with cursor.lock:
            start = cursor.position
            for offset in range(size):
                index = (start + offset) % size
                destination = pool[index]
                if destination.is_healthy:
                    cursor.position = (index + 1) % size
                    return destination
            cursor.advance()
        return None


_STRATEGIES: dict[str, Callable[[float], DestinationSelector]] = {
    "first_available": lambda ttl: FirstAvailableSelector(),
    "sticky": lambda ttl: StickySelector(ttl=ttl),
    "random": lambda ttl: RandomSelector(),
    "roundrobin": lambda ttl: RoundRobinSelector(),
}

_ALIASES = {
    "first-available": "first_available",
    "round_robin": "roundrobin",
    "round-robin": "roundrobin",
}


def build_selector(name: str, sticky_ttl: float = 0.0) -> DestinationSelector:
    """Return the strategy registered under *name*.

    Unknown names fall back to first-available with a warning.
    """
    key = name.strip().lower()
    key = _ALIASES.get(key, key)
    factory = _STRATEGIES.get(key)
    if factory is None:
        _log.warning("unknown_balance_strategy", strategy=name, fallback="first_available")
        return FirstAvailableSelector()
    return factory(sticky_ttl)
