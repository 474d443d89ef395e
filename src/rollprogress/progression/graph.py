from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional, Protocol, Set

from ..config import ExperienceConfig
from ..errors import GraphCycleError
from ..events import EventBus, EventType
from ..persistence.models import SaveProfile
from ..persistence.store import PersistenceStore
from .models import LevelNode, ProgressionStats
from .xp_curve import ExperienceCurve

logger = logging.getLogger(__name__)


class AchievementGranter(Protocol):
    """Capability used to grant the achievements attached to a level unlock."""

    def grant(self, achievement_id: str) -> bool:
        ...


class ProgressionGraph:
    """Directed unlock graph of levels plus the player's experience and level.

    Nodes without requirements start unlocked. Every other node unlocks the
    moment the active profile satisfies its requirements; see
    :meth:`check_unlocks`.
    """

    def __init__(
        self,
        nodes: Iterable[LevelNode],
        store: PersistenceStore,
        bus: EventBus,
        experience: Optional[ExperienceConfig] = None,
        curve: Optional[ExperienceCurve] = None,
        granter: Optional[AchievementGranter] = None,
        known_achievements: Optional[Iterable[str]] = None,
    ) -> None:
        self.store = store
        self.bus = bus
        self.experience = experience or ExperienceConfig()
        self.curve = curve or ExperienceCurve(
            base=self.experience.base,
            multiplier=self.experience.multiplier,
            max_level=self.experience.max_level,
        )
        self.granter = granter
        self._nodes: Dict[str, LevelNode] = {}
        for node in nodes:
            if node.id in self._nodes:
                logger.warning("Duplicate level id %r ignored", node.id)
                continue
            self._nodes[node.id] = node
        self._warn_unknown_references(known_achievements)
        self._check_acyclic()
        for node in self._nodes.values():
            node.unlocked = node.unlocked or not node.has_requirements
        logger.info("Progression graph initialized with %d levels", len(self._nodes))

    @property
    def profile(self) -> SaveProfile:
        return self.store.profile

    # Lookup

    def get(self, level_id: str) -> Optional[LevelNode]:
        return self._nodes.get(level_id)

    def all(self) -> List[LevelNode]:
        return list(self._nodes.values())

    def unlocked(self) -> List[LevelNode]:
        return [n for n in self._nodes.values() if n.unlocked]

    def completed(self) -> List[LevelNode]:
        return [n for n in self._nodes.values() if n.completed]

    def successors(self, node: LevelNode) -> List[LevelNode]:
        """Nodes whose availability may change once ``node`` unlocks or completes."""
        found: List[LevelNode] = []
        for successor_id in node.unlocks:
            successor = self._nodes.get(successor_id)
            if successor is not None and successor is not node and successor not in found:
                found.append(successor)
        for other in self._nodes.values():
            if node.id in other.required_levels and other is not node and other not in found:
                found.append(other)
        return found

    # Unlocking

    def check_unlocks(self, profile: Optional[SaveProfile] = None) -> List[LevelNode]:
        """Unlock every locked node whose requirements ``profile`` now meets.

        A node unlocked here puts its successors (and anything requiring the
        achievements it grants) back on the worklist, so whole chains resolve
        within one call. Returns the newly unlocked nodes in unlock order.
        """
        profile = self.profile if profile is None else profile
        queue: Deque[LevelNode] = deque(n for n in self._nodes.values() if not n.unlocked)
        queued: Set[str] = {n.id for n in queue}
        newly_unlocked: List[LevelNode] = []
        while queue:
            node = queue.popleft()
            queued.discard(node.id)
            if node.unlocked or not node.is_available(profile):
                continue
            self._unlock(node)
            newly_unlocked.append(node)
            candidates = self.successors(node) + self._dependents_of_achievements(node.unlock_achievements)
            for candidate in candidates:
                if not candidate.unlocked and candidate.id not in queued:
                    queue.append(candidate)
                    queued.add(candidate.id)
        return newly_unlocked

    def _unlock(self, node: LevelNode) -> None:
        node.unlocked = True
        logger.info("Level unlocked: %s", node.display_name)
        if node.unlock_achievements:
            if self.granter is None:
                logger.debug("No achievement granter configured; skipping rewards of %s", node.id)
            else:
                for achievement_id in node.unlock_achievements:
                    self.granter.grant(achievement_id)
        self.bus.publish(EventType.LEVEL_UNLOCKED, node)

    def _dependents_of_achievements(self, achievement_ids: Iterable[str]) -> List[LevelNode]:
        granted = set(achievement_ids)
        if not granted:
            return []
        return [n for n in self._nodes.values() if n.required_achievements & granted]

    # Experience

    def add_experience(self, amount: int) -> int:
        """Add experience to the active profile and return the player level.

        Raises ValueError for negative amounts.
        """
        if amount < 0:
            raise ValueError("Experience amount cannot be negative")
        profile = self.profile
        if not self.experience.enabled:
            logger.debug("Experience system disabled; ignoring %d experience", amount)
            return profile.player_level
        old_level = profile.player_level
        profile.experience += int(amount)
        new_level = self.curve.level_for(profile.experience)
        profile.player_level = new_level
        self.store.mark_dirty()
        if new_level != old_level:
            logger.info("Player level changed: %d -> %d", old_level, new_level)
            self.bus.publish(EventType.PLAYER_LEVEL_CHANGED, {"old_level": old_level, "new_level": new_level})
        self.bus.publish(
            EventType.EXPERIENCE_CHANGED,
            {
                "current": self.curve.into_level(profile.experience),
                "to_next": self.curve.to_next(profile.experience),
                "total": profile.experience,
            },
        )
        if new_level != old_level:
            self.check_unlocks(profile)
        return new_level

    def experience_award(self, node: LevelNode, completion_time: float, perfect: bool) -> int:
        award = node.base_reward // 10
        if completion_time < node.estimated_time:
            award += self.experience.time_bonus
        if perfect:
            award += self.experience.perfect_bonus
        return award

    # Completion

    def complete_level(
        self, level_id: str, completion_time: float, score: int = 0, perfect: bool = False
    ) -> Optional[int]:
        """Record a finished run of ``level_id``.

        Updates best time (strictly lower) and best score (strictly higher),
        awards experience, persists completion into the profile and re-runs
        the unlock check. Returns the experience awarded, or None for an
        unknown level.
        """
        node = self._nodes.get(level_id)
        if node is None:
            logger.warning("Unknown level id %r ignored", level_id)
            return None
        profile = self.profile
        node.completed = True
        node.perfect = node.perfect or perfect
        if node.best_time is None or completion_time < node.best_time:
            node.best_time = completion_time
        if score > node.best_score:
            node.best_score = score

        profile.level_completions[level_id] = True
        saved_best = profile.level_best_times.get(level_id)
        if saved_best is None or completion_time < saved_best:
            profile.level_best_times[level_id] = completion_time
        self.store.mark_dirty()

        awarded = self.experience_award(node, completion_time, perfect) if self.experience.enabled else 0
        logger.info(
            "Level completed: %s (time %.1fs, score %d, +%d experience)",
            node.display_name,
            completion_time,
            score,
            awarded,
        )
        self.bus.publish(
            EventType.LEVEL_COMPLETED,
            {"level": node, "time": completion_time, "score": score, "perfect": perfect, "experience": awarded},
        )
        if awarded:
            self.add_experience(awarded)
        self.check_unlocks(profile)
        return awarded

    # Recommendations

    def recommend_next(self, profile: Optional[SaveProfile] = None) -> Optional[LevelNode]:
        """Easiest, then shortest, available level not yet completed.

        With nothing left, the hardest completed level is offered for replay.
        """
        profile = self.profile if profile is None else profile
        candidates = [
            n
            for n in self._nodes.values()
            if (n.unlocked or n.is_available(profile)) and not self._is_completed(n, profile)
        ]
        if candidates:
            return min(candidates, key=lambda n: (n.difficulty, n.estimated_time))
        done = [n for n in self._nodes.values() if self._is_completed(n, profile)]
        if done:
            return max(done, key=lambda n: (n.difficulty, n.base_reward))
        return None

    def next_scene_for(self, level_id: str, profile: Optional[SaveProfile] = None) -> Optional[str]:
        """Scene to load after ``level_id``, or None when the graph has no opinion."""
        profile = self.profile if profile is None else profile
        node = self._nodes.get(level_id)
        if node is None:
            return None
        for successor_id in node.unlocks:
            successor = self._nodes.get(successor_id)
            if successor is None or successor is node:
                continue
            if successor.unlocked or successor.is_available(profile):
                return successor.scene or None
        if level_id in node.unlocks:
            return node.scene or None
        return None

    def unlock_requirements(self, level_id: str, profile: Optional[SaveProfile] = None) -> List[str]:
        """Human-readable list of what still blocks ``level_id``."""
        profile = self.profile if profile is None else profile
        node = self._nodes.get(level_id)
        if node is None:
            logger.warning("Unknown level id %r ignored", level_id)
            return []
        if node.unlocked:
            return []
        missing: List[str] = []
        if profile.player_level < node.required_level:
            missing.append(f"Reach player level {node.required_level} (currently {profile.player_level})")
        for required_id in sorted(node.required_levels):
            if not profile.is_level_completed(required_id):
                required = self._nodes.get(required_id)
                missing.append(f"Complete {required.display_name if required else required_id}")
        for achievement_id in sorted(node.required_achievements):
            if not profile.has_achievement(achievement_id):
                missing.append(f"Unlock achievement: {achievement_id}")
        return missing

    def stats(self) -> ProgressionStats:
        completed = self.completed()
        times = [n.best_time for n in completed if n.best_time is not None]
        total = len(self._nodes)
        return ProgressionStats(
            total_levels=total,
            unlocked_levels=len(self.unlocked()),
            completed_levels=len(completed),
            perfect_completions=sum(1 for n in self._nodes.values() if n.perfect),
            player_level=self.profile.player_level,
            total_experience=self.profile.experience,
            completion_percentage=(len(completed) / total * 100.0) if total else 0.0,
            average_completion_time=(sum(times) / len(times)) if times else 0.0,
            total_score=sum(n.best_score for n in completed),
        )

    # Persistence

    def rehydrate(self, profile: Optional[SaveProfile] = None) -> List[LevelNode]:
        """Rebuild node state from ``profile`` and re-derive the unlocked set."""
        profile = self.profile if profile is None else profile
        for node in self._nodes.values():
            node.reset_state()
            node.completed = profile.is_level_completed(node.id)
            node.best_time = profile.level_best_times.get(node.id)
        level = self.curve.level_for(profile.experience)
        if level != profile.player_level:
            logger.info("Player level %d does not match experience; using %d", profile.player_level, level)
            profile.player_level = level
            if profile is self.profile:
                self.store.mark_dirty()
        unlocked = self.check_unlocks(profile)
        logger.debug("Rehydrated progression: %d unlocked, %d completed", len(self.unlocked()), len(self.completed()))
        return unlocked

    # Validation

    def _is_completed(self, node: LevelNode, profile: SaveProfile) -> bool:
        return node.completed or profile.is_level_completed(node.id)

    def _warn_unknown_references(self, known_achievements: Optional[Iterable[str]] = None) -> None:
        achievements = None if known_achievements is None else set(known_achievements)
        for node in self._nodes.values():
            for ref in sorted(node.required_levels) + list(node.unlocks):
                if ref not in self._nodes:
                    logger.warning("Level %r references unknown level %r", node.id, ref)
            if achievements is None:
                continue
            for ref in sorted(node.required_achievements) + list(node.unlock_achievements):
                if ref not in achievements:
                    logger.warning("Level %r references unknown achievement %r", node.id, ref)

    def _edges(self) -> Dict[str, Set[str]]:
        edges: Dict[str, Set[str]] = {node_id: set() for node_id in self._nodes}
        for node in self._nodes.values():
            for successor_id in node.unlocks:
                if successor_id != node.id and successor_id in self._nodes:
                    edges[node.id].add(successor_id)
            for required_id in node.required_levels:
                if required_id in self._nodes:
                    edges[required_id].add(node.id)
        return edges

    def _check_acyclic(self) -> None:
        """Raise GraphCycleError if prerequisites loop back on themselves."""
        edges = self._edges()
        white, grey, black = 0, 1, 2
        color = {node_id: white for node_id in edges}
        for start in edges:
            if color[start] != white:
                continue
            color[start] = grey
            path = [start]
            stack = [(start, iter(sorted(edges[start])))]
            while stack:
                node_id, children = stack[-1]
                child = next(children, None)
                if child is None:
                    color[node_id] = black
                    stack.pop()
                    path.pop()
                elif color[child] == grey:
                    cycle = path[path.index(child):] + [child]
                    raise GraphCycleError(f"Level dependency cycle: {' -> '.join(cycle)}")
                elif color[child] == white:
                    color[child] = grey
                    path.append(child)
                    stack.append((child, iter(sorted(edges[child]))))
