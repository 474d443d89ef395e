from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional

from ..events import EventBus, EventType
from ..persistence.models import SaveProfile, utc_now_iso
from ..persistence.store import PersistenceStore
from .models import AchievementCategory, AchievementDef, AchievementKind, AchievementRarity
from .notifications import NotificationQueue

logger = logging.getLogger(__name__)


class AchievementTracker:
    """Owns every AchievementDef and applies progress updates to them.

    Each achievement moves Locked -> Unlocked exactly once. The unlock fires
    on the update whose value takes progress from below the target to at or
    above it; later updates are ignored. Unknown ids are logged and ignored.

    The active profile is always read from the store so that a slot switch
    is picked up without re-wiring the tracker; call :meth:`rehydrate`
    afterwards to sync the definitions with it.
    """

    def __init__(
        self,
        definitions: Iterable[AchievementDef],
        store: PersistenceStore,
        bus: EventBus,
        notifications: Optional[NotificationQueue] = None,
    ) -> None:
        self.store = store
        self.bus = bus
        self.notifications = notifications
        self._defs: Dict[str, AchievementDef] = {}
        for definition in definitions:
            if definition.id in self._defs:
                logger.warning("Duplicate achievement id %r ignored", definition.id)
                continue
            self._defs[definition.id] = definition
        logger.info("Achievement tracker initialized with %d achievements", len(self._defs))

    @property
    def profile(self) -> SaveProfile:
        return self.store.profile

    # Updates

    def update_progress(self, achievement_id: str, value: int) -> bool:
        """Apply a progress report according to the achievement's kind.

        ``value`` is always an absolute figure: a flag for one-time
        achievements, the current measurement for progressive ones and the
        running total for cumulative ones. Returns True when this update
        unlocked the achievement.
        """
        achievement = self._lookup(achievement_id)
        if achievement is None or achievement.unlocked:
            return False

        value = int(value)
        was_completed = achievement.is_completed
        previous = achievement.progress
        if achievement.kind is AchievementKind.ONE_TIME:
            if value <= 0:
                return False
            achievement.progress = 1
        elif achievement.kind is AchievementKind.PROGRESSIVE:
            achievement.progress = max(achievement.progress, value)
        else:
            # Cumulative and conditional values replace the stored figure
            achievement.progress = max(0, value)

        if achievement.progress == previous:
            return False

        self._store_progress(achievement)
        self.bus.publish(EventType.ACHIEVEMENT_PROGRESS, achievement)
        if not was_completed and achievement.is_completed:
            return self._unlock(achievement)
        return False

    def update_condition(self, achievement_id: str, predicate: Callable[[SaveProfile], int]) -> bool:
        """Evaluate a caller-supplied predicate against the active profile.

        Meant for conditional achievements: the predicate's result (a bool or a
        count) becomes the new progress value.
        """
        if self._lookup(achievement_id) is None:
            return False
        return self.update_progress(achievement_id, int(predicate(self.profile)))

    def unlock(self, achievement_id: str) -> bool:
        """Unlock directly, regardless of progress.

        Returns False for unknown or already unlocked achievements.
        """
        achievement = self._lookup(achievement_id)
        if achievement is None:
            return False
        if achievement.unlocked:
            logger.debug("Achievement %s already unlocked", achievement_id)
            return False
        return self._unlock(achievement)

    # Achievement granting capability used by the progression graph
    grant = unlock

    def rehydrate(self, profile: Optional[SaveProfile] = None) -> None:
        """Reset every definition and re-apply the persisted state of ``profile``."""
        profile = self.profile if profile is None else profile
        for achievement in self._defs.values():
            achievement.reset()
        for achievement_id in profile.unlocked_achievements:
            achievement = self._defs.get(achievement_id)
            if achievement is None:
                logger.warning("Saved achievement %r is not defined; keeping it in the profile", achievement_id)
                continue
            achievement.unlocked = True
            achievement.progress = achievement.target
        pending: List[AchievementDef] = []
        for achievement_id, progress in profile.achievement_progress.items():
            achievement = self._defs.get(achievement_id)
            if achievement is None or achievement.unlocked:
                continue
            achievement.progress = max(0, int(progress))
            if achievement.is_completed:
                pending.append(achievement)
        # Progress saved at or past the target never crossed the edge while
        # tracked; finish those unlocks now.
        for achievement in pending:
            logger.info("Completing stale unlock for %s", achievement.id)
            self._unlock(achievement)
        logger.debug(
            "Rehydrated achievements: %d unlocked, %d in progress",
            self.unlocked_count(),
            sum(1 for a in self._defs.values() if not a.unlocked and a.progress > 0),
        )

    def reset_all(self) -> None:
        """Lock every achievement and clear the profile's achievement state."""
        for achievement in self._defs.values():
            achievement.reset()
        self.profile.unlocked_achievements.clear()
        self.profile.achievement_progress.clear()
        self.store.mark_dirty()
        logger.info("All achievements reset")

    # Queries

    def get(self, achievement_id: str) -> Optional[AchievementDef]:
        return self._defs.get(achievement_id)

    def all(self) -> List[AchievementDef]:
        return list(self._defs.values())

    def unlocked(self) -> List[AchievementDef]:
        return [a for a in self._defs.values() if a.unlocked]

    def locked(self) -> List[AchievementDef]:
        return [a for a in self._defs.values() if not a.unlocked]

    def by_category(self, category: AchievementCategory) -> List[AchievementDef]:
        return [a for a in self._defs.values() if a.category is category]

    def by_rarity(self, rarity: AchievementRarity) -> List[AchievementDef]:
        return [a for a in self._defs.values() if a.rarity is rarity]

    def visible(self) -> List[AchievementDef]:
        """Achievements a listing screen may show: secrets never, hidden ones once earned."""
        return [a for a in self._defs.values() if not a.secret and (not a.hidden or a.unlocked)]

    def unlocked_count(self) -> int:
        return sum(1 for a in self._defs.values() if a.unlocked)

    def completion_percentage(self) -> float:
        if not self._defs:
            return 0.0
        return self.unlocked_count() / len(self._defs) * 100.0

    # Internal utilities

    def _lookup(self, achievement_id: str) -> Optional[AchievementDef]:
        achievement = self._defs.get(achievement_id)
        if achievement is None:
            logger.warning("Unknown achievement id %r ignored", achievement_id)
        return achievement

    def _store_progress(self, achievement: AchievementDef) -> None:
        progress = self.profile.achievement_progress
        if achievement.unlocked or achievement.progress <= 0:
            progress.pop(achievement.id, None)
        else:
            progress[achievement.id] = achievement.progress
        self.store.mark_dirty()

    def _unlock(self, achievement: AchievementDef) -> bool:
        achievement.unlocked = True
        achievement.unlocked_at = utc_now_iso()
        achievement.progress = max(achievement.progress, achievement.target)
        profile = self.profile
        if achievement.id not in profile.unlocked_achievements:
            profile.unlocked_achievements.append(achievement.id)
            profile.total_score += achievement.score_reward
        profile.achievement_progress.pop(achievement.id, None)
        self.store.mark_dirty()
        logger.info("Achievement unlocked: %s (+%d score)", achievement.title, achievement.score_reward)
        self.bus.publish(EventType.ACHIEVEMENT_UNLOCKED, achievement)
        if self.notifications is not None:
            self.notifications.enqueue(achievement)
        return True
