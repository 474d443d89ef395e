from __future__ import annotations

import logging

from .store import PersistenceStore

logger = logging.getLogger(__name__)


class AutosaveScheduler:
    """Polls the store's dirty flag on a fixed interval of game-loop time.

    ``tick(dt)`` is driven by the game loop; no wall clock is read, so tests
    can advance time explicitly. A failed save is retried only when the next
    interval has elapsed.
    """

    def __init__(self, store: PersistenceStore, interval: float = 60.0, enabled: bool = True) -> None:
        if interval <= 0:
            raise ValueError("Autosave interval must be positive")
        self.store = store
        self.interval = float(interval)
        self.enabled = enabled
        self._elapsed = 0.0

    @property
    def elapsed(self) -> float:
        return self._elapsed

    def tick(self, dt: float) -> bool:
        """Advance the scheduler. Returns True if a save happened on this tick."""
        if not self.enabled or dt <= 0:
            return False
        self._elapsed += dt
        if self._elapsed < self.interval:
            return False
        self._elapsed = 0.0
        if not self.store.is_dirty:
            return False
        logger.debug("Autosave interval elapsed; flushing slot %d", self.store.active_slot)
        return self.store.flush_if_dirty(reason="autosave")

    def reset(self) -> None:
        self._elapsed = 0.0
