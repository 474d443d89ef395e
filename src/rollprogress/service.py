from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import List, Optional

from .achievements.catalog import load_achievements
from .achievements.notifications import NotificationQueue
from .achievements.tracker import AchievementTracker
from .config import ProgressionConfig
from .events import Event, EventBus, EventType, Subscription
from .persistence.autosave import AutosaveScheduler
from .persistence.models import PlayerStatistics, SaveProfile
from .persistence.preferences import JsonPreferences, Preferences
from .persistence.store import CloudSync, PersistenceStore
from .progression.catalog import load_levels
from .progression.graph import ProgressionGraph
from .rules import AchievementRules
from .runtime.level_tracker import LevelCompletion, LevelRuntimeTracker
from .runtime.sequence import LevelSequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatisticsSnapshot:
    """Movement statistics of the current play session, as reported by gameplay.

    Counters are session totals; the service adds them to the totals the
    profile had when the session started.
    """

    jumps: int = 0
    double_jumps: int = 0
    distance: float = 0.0
    flight_time: float = 0.0
    play_time: float = 0.0
    max_height: float = 0.0
    max_speed: float = 0.0


class ProgressionService:
    """Composition root owning every progression component for one process.

    Build it once with :meth:`create` and hand it to whatever needs it.
    """

    def __init__(
        self,
        config: ProgressionConfig,
        bus: EventBus,
        store: PersistenceStore,
        tracker: AchievementTracker,
        graph: ProgressionGraph,
        runtime: LevelRuntimeTracker,
        autosave: AutosaveScheduler,
        notifications: Optional[NotificationQueue] = None,
        preferences: Optional[Preferences] = None,
    ) -> None:
        self.config = config
        self.bus = bus
        self.store = store
        self.tracker = tracker
        self.graph = graph
        self.runtime = runtime
        self.autosave = autosave
        self.notifications = notifications
        self.preferences = preferences
        self.rules = AchievementRules(tracker, store, bus)
        self.airborne = False
        self._baseline_statistics = PlayerStatistics()
        self._baseline_play_time = 0.0
        self._level_collected = 0
        self._closed = False
        # The service folds events into the profile before the rules read it
        self._subscriptions: List[Subscription] = [
            bus.subscribe(EventType.SAVE_LOADED, self._on_save_loaded),
            bus.subscribe(EventType.LEVEL_STARTED, self._on_level_started),
            bus.subscribe(EventType.COLLECTIBLE_COUNT_CHANGED, self._on_collectible_count_changed),
            bus.subscribe(EventType.RUNTIME_LEVEL_FINISHED, self._on_level_finished),
        ]
        self.rules.attach()

    @classmethod
    def create(
        cls,
        config: Optional[ProgressionConfig] = None,
        bus: Optional[EventBus] = None,
        preferences: Optional[Preferences] = None,
        cloud_sync: Optional[CloudSync] = None,
    ) -> "ProgressionService":
        config = config or ProgressionConfig.load()
        bus = bus or EventBus()
        store = PersistenceStore(config.persistence, bus, cloud_sync=cloud_sync)
        if preferences is None:
            preferences = JsonPreferences(store.save_dir / config.persistence.preferences_file)
        notifications = None
        if config.achievements.notifications:
            notifications = NotificationQueue(bus, duration=config.achievements.notification_duration)
        achievements = load_achievements(config.achievements.catalog)
        tracker = AchievementTracker(achievements, store, bus, notifications)
        graph = ProgressionGraph(
            load_levels(config.levels.catalog),
            store,
            bus,
            config.experience,
            granter=tracker,
            known_achievements=[a.id for a in achievements],
        )
        runtime = LevelRuntimeTracker(bus, LevelSequence.from_config(config.runtime), graph, preferences)
        autosave = AutosaveScheduler(
            store,
            interval=config.persistence.autosave_interval,
            enabled=config.persistence.autosave,
        )
        logger.info("Progression service created (save dir %s)", store.save_dir)
        return cls(config, bus, store, tracker, graph, runtime, autosave, notifications, preferences)

    @property
    def profile(self) -> SaveProfile:
        return self.store.profile

    # Lifecycle

    def start(self, slot: Optional[int] = None) -> SaveProfile:
        """Load ``slot`` (or the most recently written one) and rehydrate everything."""
        if slot is None:
            return self.store.load_most_recent()
        return self.store.load(slot)

    def tick(self, dt: float) -> None:
        self.runtime.tick(dt)
        if self.notifications is not None:
            self.notifications.tick(dt)
        self.autosave.tick(dt)

    def on_focus_changed(self, has_focus: bool) -> None:
        if not has_focus:
            self.store.flush_if_dirty(reason="focus lost")

    def shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.store.flush_if_dirty(reason="shutdown")
        self.rules.detach()
        for sub in self._subscriptions:
            sub.unsubscribe()
        self._subscriptions = []
        if self.notifications is not None:
            self.notifications.clear()
        logger.info("Progression service shut down")

    def next_scene(self) -> Optional[str]:
        return self.runtime.resolve_next_scene(self.profile)

    # Consumed gameplay events

    def notify_game_started(self) -> None:
        self.bus.publish(EventType.GAME_STARTED)

    def report_statistics(self, snapshot: StatisticsSnapshot) -> None:
        """Fold a session snapshot into the profile totals and publish them.

        Counters are added to the totals loaded with the slot; maxima only grow.
        """
        base = self._baseline_statistics
        profile = self.profile
        profile.statistics = PlayerStatistics(
            total_jumps=base.total_jumps + snapshot.jumps,
            total_double_jumps=base.total_double_jumps + snapshot.double_jumps,
            total_distance=base.total_distance + snapshot.distance,
            total_flight_time=base.total_flight_time + snapshot.flight_time,
            max_height=max(profile.statistics.max_height, snapshot.max_height),
            max_speed=max(profile.statistics.max_speed, snapshot.max_speed),
        )
        profile.total_play_time = self._baseline_play_time + snapshot.play_time
        self.store.mark_dirty()
        self.bus.publish(EventType.STATISTICS_UPDATED, profile)

    def set_airborne(self, airborne: bool) -> None:
        """Grounded/flying toggle. Flight time itself arrives with the statistics."""
        if airborne == self.airborne:
            return
        self.airborne = airborne
        logger.debug("Player %s", "airborne" if airborne else "grounded")
        self.bus.publish(EventType.PLAYER_AIRBORNE_CHANGED, airborne)

    # Bus handlers

    def _on_save_loaded(self, event: Event) -> None:
        profile: SaveProfile = event.payload["profile"]
        self._baseline_statistics = replace(profile.statistics)
        self._baseline_play_time = profile.total_play_time
        self.tracker.rehydrate(profile)
        self.graph.rehydrate(profile)

    def _on_level_started(self, event: Event) -> None:
        self._level_collected = 0

    def _on_collectible_count_changed(self, event: Event) -> None:
        payload = event.payload or {}
        collected = int(payload.get("total", 0)) - int(payload.get("remaining", 0))
        delta = collected - self._level_collected
        if delta > 0:
            self.profile.total_collectibles_collected += delta
            self.store.mark_dirty()
        self._level_collected = max(self._level_collected, collected)

    def _on_level_finished(self, event: Event) -> None:
        completion: LevelCompletion = event.payload
        profile = self.profile
        if completion.location:
            best = profile.location_best_times.get(completion.location)
            if best is None or completion.elapsed < best:
                profile.location_best_times[completion.location] = completion.elapsed
            profile.last_location = completion.location
            self.store.mark_dirty()
        self.graph.complete_level(
            completion.level_id,
            completion.elapsed,
            score=completion.collected,
            perfect=completion.perfect,
        )
