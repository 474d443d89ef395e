from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional, Set

from ..persistence.models import SaveProfile


class Difficulty(IntEnum):
    TUTORIAL = 0
    EASY = 1
    MEDIUM = 2
    HARD = 3
    EXPERT = 4
    MASTER = 5

    @classmethod
    def parse(cls, value: Any) -> "Difficulty":
        if isinstance(value, str):
            return cls[value.strip().upper()]
        return cls(int(value))


@dataclass
class LevelNode:
    """One level in the unlock graph.

    ``unlocks`` lists successor ids. A node may list itself there to mean
    "replay the same node" (endless or generated content); that edge is not a
    dependency.
    """

    id: str
    display_name: str = ""
    scene: str = ""
    difficulty: Difficulty = Difficulty.EASY
    required_level: int = 1
    required_levels: Set[str] = field(default_factory=set)
    required_achievements: Set[str] = field(default_factory=set)
    unlocks: List[str] = field(default_factory=list)
    unlock_achievements: List[str] = field(default_factory=list)
    estimated_time: float = 300.0
    base_reward: int = 1000
    best_time: Optional[float] = None
    best_score: int = 0
    perfect: bool = False
    unlocked: bool = False
    completed: bool = False

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("LevelNode.id must be non-empty")
        if not self.display_name:
            self.display_name = self.id
        if self.required_level < 1:
            raise ValueError(f"Level {self.id!r} required_level must be >= 1")
        self.required_levels = set(self.required_levels)
        self.required_achievements = set(self.required_achievements)

    @property
    def has_requirements(self) -> bool:
        return bool(self.required_levels or self.required_achievements or self.required_level > 1)

    def is_available(self, profile: SaveProfile) -> bool:
        """True when ``profile`` satisfies every requirement of this node."""
        if profile.player_level < self.required_level:
            return False
        if not all(profile.is_level_completed(level_id) for level_id in self.required_levels):
            return False
        return all(profile.has_achievement(a) for a in self.required_achievements)

    def reset_state(self) -> None:
        self.best_time = None
        self.best_score = 0
        self.perfect = False
        self.unlocked = not self.has_requirements
        self.completed = False

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "LevelNode":
        return LevelNode(
            id=str(data["id"]),
            display_name=str(data.get("display_name", "")),
            scene=str(data.get("scene", "")),
            difficulty=Difficulty.parse(data.get("difficulty", "easy")),
            required_level=int(data.get("required_level", 1)),
            required_levels=set(data.get("required_levels") or []),
            required_achievements=set(data.get("required_achievements") or []),
            unlocks=list(data.get("unlocks") or []),
            unlock_achievements=list(data.get("unlock_achievements") or []),
            estimated_time=float(data.get("estimated_time", 300.0)),
            base_reward=int(data.get("base_reward", 1000)),
        )


@dataclass(frozen=True)
class ProgressionStats:
    total_levels: int
    unlocked_levels: int
    completed_levels: int
    perfect_completions: int
    player_level: int
    total_experience: int
    completion_percentage: float
    average_completion_time: float
    total_score: int
