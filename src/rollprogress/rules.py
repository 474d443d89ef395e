from __future__ import annotations

import logging
from typing import Callable, Dict, List

from .achievements.tracker import AchievementTracker
from .events import Event, EventBus, EventType, Subscription
from .persistence.models import MAIN_LEVEL_IDS, SaveProfile
from .persistence.store import PersistenceStore
from .runtime.level_tracker import LevelCompletion

logger = logging.getLogger(__name__)

# Achievement id -> absolute value read from the aggregated profile
STATISTIC_RULES: Dict[str, Callable[[SaveProfile], int]] = {
    "jump_master": lambda p: p.statistics.total_jumps,
    "double_jump": lambda p: 1 if p.statistics.total_double_jumps > 0 else 0,
    "frequent_flyer": lambda p: int(round(p.statistics.total_flight_time)),
    "marathon": lambda p: int(round(p.total_play_time)),
    "speed_demon": lambda p: int(p.statistics.max_speed),
    "sonic_boom": lambda p: int(p.statistics.max_speed),
    "secret_height": lambda p: int(p.statistics.max_height),
}

COLLECTION_TOTAL_RULES = ("collect_10", "collect_50", "collect_100", "legendary_collector")

LEVEL_INDEX_RULES: Dict[int, str] = {
    1: "level_1_complete",
    2: "level_2_complete",
    3: "level_3_complete",
}

QUICK_LEVEL_1_SECONDS = 30.0


class AchievementRules:
    """Turns gameplay events into achievement progress updates.

    Every value passed to the tracker is an absolute figure taken from the
    active profile, so the handlers must run after the service has folded the
    event into the profile. ``ProgressionService`` attaches the rules last to
    guarantee that ordering.
    """

    def __init__(self, tracker: AchievementTracker, store: PersistenceStore, bus: EventBus) -> None:
        self.tracker = tracker
        self.store = store
        self.bus = bus
        self._subscriptions: List[Subscription] = []

    @property
    def attached(self) -> bool:
        return bool(self._subscriptions)

    def attach(self) -> None:
        if self._subscriptions:
            return
        self._subscriptions = [
            self.bus.subscribe(EventType.GAME_STARTED, self.on_game_started),
            self.bus.subscribe(EventType.STATISTICS_UPDATED, self.on_statistics_updated),
            self.bus.subscribe(EventType.COLLECTIBLE_COUNT_CHANGED, self.on_collectible_count_changed),
            self.bus.subscribe(EventType.RUNTIME_LEVEL_FINISHED, self.on_level_finished),
        ]

    def detach(self) -> None:
        for sub in self._subscriptions:
            sub.unsubscribe()
        self._subscriptions = []

    # Handlers

    def on_game_started(self, event: Event) -> None:
        self.tracker.update_progress("first_steps", 1)

    def on_statistics_updated(self, event: Event) -> None:
        profile = self.store.profile
        for achievement_id, value_of in STATISTIC_RULES.items():
            self.tracker.update_progress(achievement_id, value_of(profile))

    def on_collectible_count_changed(self, event: Event) -> None:
        payload = event.payload or {}
        collected = int(payload.get("total", 0)) - int(payload.get("remaining", 0))
        if collected > 0:
            self.tracker.update_progress("collector", 1)
        total = self.store.profile.total_collectibles_collected
        for achievement_id in COLLECTION_TOTAL_RULES:
            self.tracker.update_progress(achievement_id, total)

    def on_level_finished(self, event: Event) -> None:
        completion: LevelCompletion = event.payload
        profile = self.store.profile

        indexed = LEVEL_INDEX_RULES.get(completion.level_index)
        if indexed is not None:
            self.tracker.update_progress(indexed, 1)
            if completion.level_index == 1 and completion.elapsed < QUICK_LEVEL_1_SECONDS:
                self.tracker.update_progress("quick_level_1", 1)

        if completion.location:
            location = completion.location
            self.tracker.update_progress("explorer", 1)
            self.tracker.update_progress("globe_trotter", len(profile.location_best_times))
            self.tracker.update_condition("hometown_hero", lambda p: location in p.favorite_locations)

        self.tracker.update_progress("level_complete", 1)
        main_completed = sum(1 for level_id in MAIN_LEVEL_IDS if profile.is_level_completed(level_id))
        self.tracker.update_progress("all_levels", main_completed)
        logger.debug("Applied level rules for %s", completion.level_id)
