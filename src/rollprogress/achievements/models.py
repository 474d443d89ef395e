from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class AchievementKind(str, Enum):
    ONE_TIME = "one_time"
    PROGRESSIVE = "progressive"
    CUMULATIVE = "cumulative"
    CONDITIONAL = "conditional"


class AchievementCategory(str, Enum):
    GENERAL = "general"
    COLLECTIBLES = "collectibles"
    MOVEMENT = "movement"
    SPEED = "speed"
    EXPLORATION = "exploration"
    LEVELS = "levels"
    TIME = "time"
    SPECIAL = "special"


class AchievementRarity(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


@dataclass
class AchievementDef:
    """Definition plus live state of one achievement.

    ``progress`` only moves while the achievement is locked; once ``unlocked``
    flips to True the definition is terminal.
    """

    id: str
    title: str
    description: str = ""
    kind: AchievementKind = AchievementKind.ONE_TIME
    target: int = 1
    score_reward: int = 100
    category: AchievementCategory = AchievementCategory.GENERAL
    rarity: AchievementRarity = AchievementRarity.COMMON
    hidden: bool = False
    secret: bool = False
    progress: int = 0
    unlocked: bool = False
    unlocked_at: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.id or not isinstance(self.id, str):
            raise ValueError("AchievementDef.id must be a non-empty string")
        if self.target < 1:
            raise ValueError(f"Achievement {self.id!r} target must be >= 1")
        if self.score_reward < 0:
            raise ValueError(f"Achievement {self.id!r} score_reward cannot be negative")

    @property
    def is_completed(self) -> bool:
        return self.progress >= self.target

    @property
    def progress_percentage(self) -> float:
        return max(0.0, min(1.0, self.progress / self.target)) * 100.0

    def reset(self) -> None:
        self.progress = 0
        self.unlocked = False
        self.unlocked_at = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "AchievementDef":
        return AchievementDef(
            id=str(data["id"]),
            title=str(data.get("title", data["id"])),
            description=str(data.get("description", "")),
            kind=AchievementKind(data.get("kind", AchievementKind.ONE_TIME.value)),
            target=int(data.get("target", 1)),
            score_reward=int(data.get("score_reward", 100)),
            category=AchievementCategory(data.get("category", AchievementCategory.GENERAL.value)),
            rarity=AchievementRarity(data.get("rarity", AchievementRarity.COMMON.value)),
            hidden=bool(data.get("hidden", False)),
            secret=bool(data.get("secret", False)),
        )
