from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence

from ..errors import SaveError
from ..events import EventBus, EventType
from ..persistence.models import SaveProfile
from ..persistence.preferences import ENDLESS_LOCATION_INDEX_KEY, ENDLESS_MODE_KEY, Preferences
from ..progression.graph import ProgressionGraph
from .sequence import LevelSequence

logger = logging.getLogger(__name__)


@dataclass
class LevelConfig:
    """Static description of the level being played.

    ``next_scene`` overrides every other next-scene rule when set.
    ``location`` names the real-world place a generated level was built from.
    """

    level_id: str
    scene: str = ""
    level_index: int = 0
    next_scene: Optional[str] = None
    time_limit: Optional[float] = None
    location: str = ""

    def __post_init__(self) -> None:
        if not self.scene:
            self.scene = self.level_id
        if self.time_limit is not None and self.time_limit <= 0:
            raise ValueError("time_limit must be positive when set")


@dataclass
class CollectibleRef:
    id: str
    collected: bool = False
    collecting: bool = False


@dataclass(frozen=True)
class LevelCompletion:
    """Payload of ``runtime.level_finished``."""

    level_id: str
    scene: str
    level_index: int
    elapsed: float
    collected: int
    total: int
    location: str = ""

    @property
    def perfect(self) -> bool:
        return self.total > 0 and self.collected == self.total


class LevelRuntimeTracker:
    """Counts collectibles of the active level and fires its completion once.

    Completion is a latch: the first time ``remaining`` reaches zero the
    ``runtime.level_finished`` event is published, and nothing after that
    (duplicate pickups, a forced completion) publishes it again until the
    next :meth:`begin_level`.
    """

    def __init__(
        self,
        bus: EventBus,
        sequence: LevelSequence,
        graph: Optional[ProgressionGraph] = None,
        preferences: Optional[Preferences] = None,
    ) -> None:
        self.bus = bus
        self.sequence = sequence
        self.graph = graph
        self.preferences = preferences
        self._config: Optional[LevelConfig] = None
        self._refs: Dict[str, CollectibleRef] = {}
        self._elapsed = 0.0
        self._completed = False
        self._time_expired = False

    # State

    @property
    def config(self) -> Optional[LevelConfig]:
        return self._config

    @property
    def is_active(self) -> bool:
        return self._config is not None

    @property
    def is_completed(self) -> bool:
        return self._completed

    @property
    def elapsed(self) -> float:
        return self._elapsed

    @property
    def total(self) -> int:
        return len(self._refs)

    @property
    def remaining(self) -> int:
        return sum(1 for ref in self._refs.values() if not ref.collected)

    @property
    def collected(self) -> int:
        return self.total - self.remaining

    def get(self, collectible_id: str) -> Optional[CollectibleRef]:
        return self._refs.get(collectible_id)

    # Lifecycle

    def begin_level(self, config: LevelConfig, collectible_ids: Iterable[str] = ()) -> None:
        if self._config is not None and not self._completed:
            logger.info("Abandoning level %s for %s", self._config.level_id, config.level_id)
        self._config = config
        self._refs = {}
        self._elapsed = 0.0
        self._completed = False
        self._time_expired = False
        self.register_many(collectible_ids)
        logger.info("Level started: %s (%d collectibles)", config.level_id, self.total)
        self.bus.publish(EventType.LEVEL_STARTED, config)

    def end_level(self) -> None:
        """Detach from the active level (scene unload)."""
        if self._config is None:
            return
        logger.debug("Level %s ended after %.1fs", self._config.level_id, self._elapsed)
        self._config = None
        self._refs = {}

    def tick(self, dt: float) -> None:
        if self._config is None or self._completed or dt <= 0:
            return
        self._elapsed += dt
        limit = self._config.time_limit
        if limit is not None and not self._time_expired and self._elapsed >= limit:
            self._time_expired = True
            logger.info("Time limit of %.0fs expired on %s", limit, self._config.level_id)
            self.bus.publish(EventType.LEVEL_TIME_EXPIRED, self._config)

    # Collectibles

    def register(self, collectible_id: str) -> CollectibleRef:
        """Add a collectible to the active level. Registering an id twice is a no-op."""
        ref = self._refs.get(collectible_id)
        if ref is not None:
            logger.debug("Collectible %s already registered", collectible_id)
            return ref
        ref = CollectibleRef(id=collectible_id)
        self._refs[collectible_id] = ref
        return ref

    def register_many(self, collectible_ids: Iterable[str]) -> int:
        before = self.total
        for collectible_id in collectible_ids:
            self.register(collectible_id)
        return self.total - before

    def deregister(self, collectible_id: str) -> bool:
        """Remove a collectible (destroyed without pickup). May complete the level."""
        if self._refs.pop(collectible_id, None) is None:
            return False
        self._check_completion()
        return True

    def collect(self, collectible_id: str) -> bool:
        """Register a pickup. Returns False for duplicates and unknown ids."""
        if self._config is None or self._completed:
            return False
        ref = self._refs.get(collectible_id)
        if ref is None:
            logger.warning("Unknown collectible %r ignored", collectible_id)
            return False
        if ref.collected or ref.collecting:
            logger.debug("Duplicate pickup of %s ignored", collectible_id)
            return False
        ref.collecting = True
        try:
            ref.collected = True
            remaining = self.remaining
            self.bus.publish(
                EventType.COLLECTIBLE_COUNT_CHANGED,
                {"level_id": self._config.level_id, "remaining": remaining, "total": self.total},
            )
            self._check_completion()
        finally:
            ref.collecting = False
        return True

    def complete(self) -> bool:
        """Force completion regardless of remaining collectibles (goal zone reached)."""
        if self._config is None or self._completed:
            return False
        self._finish()
        return True

    def _check_completion(self) -> None:
        if self._config is None or self._completed:
            return
        if self.total > 0 and self.remaining == 0:
            self._finish()

    def _finish(self) -> None:
        self._completed = True
        config = self._config
        completion = LevelCompletion(
            level_id=config.level_id,
            scene=config.scene,
            level_index=config.level_index,
            elapsed=self._elapsed,
            collected=self.collected,
            total=self.total,
            location=config.location,
        )
        logger.info("Level finished: %s in %.1fs", config.level_id, self._elapsed)
        self._update_endless_state(config)
        self.bus.publish(EventType.RUNTIME_LEVEL_FINISHED, completion)

    # Next scene

    def resolve_next_scene(self, profile: Optional[SaveProfile] = None) -> Optional[str]:
        """Scene to load after the active level.

        An explicit override on the level config wins, then the unlock graph,
        then the static sequence table. None means there is nowhere to go.
        """
        config = self._config
        if config is None:
            return None
        if config.next_scene:
            return config.next_scene
        if self.graph is not None:
            scene = self.graph.next_scene_for(config.level_id, profile)
            if scene:
                return scene
        return self.sequence.next_scene(config.scene)

    # Endless mode

    @property
    def endless_mode(self) -> bool:
        if self.preferences is None:
            return False
        return self.preferences.get_bool(ENDLESS_MODE_KEY, False)

    @property
    def endless_location_index(self) -> int:
        if self.preferences is None:
            return 0
        return self.preferences.get_int(ENDLESS_LOCATION_INDEX_KEY, 0)

    def current_endless_location(self, locations: Sequence[str]) -> Optional[str]:
        if not locations:
            return None
        return locations[self.endless_location_index % len(locations)]

    def _update_endless_state(self, config: LevelConfig) -> None:
        if self.preferences is None:
            return
        try:
            if self.sequence.is_last_fixed(config.scene):
                self.preferences.set(ENDLESS_MODE_KEY, True)
                self.preferences.set(ENDLESS_LOCATION_INDEX_KEY, 0)
                logger.info("Fixed level sequence finished; endless mode enabled")
            elif self.endless_mode and self.sequence.is_endless(config.scene):
                index = self.endless_location_index + 1
                self.preferences.set(ENDLESS_LOCATION_INDEX_KEY, index)
                logger.debug("Endless location index advanced to %d", index)
        except SaveError as e:
            logger.error("Could not persist endless mode state: %s", e)
