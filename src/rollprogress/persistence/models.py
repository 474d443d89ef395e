from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..errors import SaveValidationError

# Increment when making breaking schema changes
FORMAT_VERSION = 1

MAIN_LEVEL_IDS = ("level1", "level2", "level3")

DEFAULT_FAVORITE_LOCATIONS = [
    "Leipzig, Markt",
    "Berlin, Brandenburger Tor",
    "München, Marienplatz",
]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _clamp(val: Any, lo: float, hi: float) -> float:
    return max(lo, min(hi, float(val)))


@dataclass
class PlayerStatistics:
    """Cumulative movement statistics across all sessions of a profile."""

    total_jumps: int = 0
    total_double_jumps: int = 0
    total_distance: float = 0.0
    total_flight_time: float = 0.0
    max_height: float = 0.0
    max_speed: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "PlayerStatistics":
        return PlayerStatistics(
            total_jumps=int(data.get("total_jumps", 0)),
            total_double_jumps=int(data.get("total_double_jumps", 0)),
            total_distance=float(data.get("total_distance", 0.0)),
            total_flight_time=float(data.get("total_flight_time", 0.0)),
            max_height=float(data.get("max_height", 0.0)),
            max_speed=float(data.get("max_speed", 0.0)),
        )


@dataclass
class ProfileSettings:
    master_volume: float = 1.0
    music_volume: float = 0.8
    sfx_volume: float = 1.0
    particle_effects: bool = True
    quality_level: int = 2
    language: str = "en"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ProfileSettings":
        """Create settings from a dict with clamping of the volume channels."""
        return ProfileSettings(
            master_volume=_clamp(data.get("master_volume", 1.0), 0.0, 1.0),
            music_volume=_clamp(data.get("music_volume", 0.8), 0.0, 1.0),
            sfx_volume=_clamp(data.get("sfx_volume", 1.0), 0.0, 1.0),
            particle_effects=bool(data.get("particle_effects", True)),
            quality_level=int(data.get("quality_level", 2)),
            language=str(data.get("language", "en")),
        )


@dataclass
class SaveProfile:
    """Everything persisted in one save slot."""

    player_name: str = "Player"
    player_level: int = 1
    experience: int = 0
    total_score: int = 0
    total_play_time: float = 0.0
    total_collectibles_collected: int = 0
    level_completions: Dict[str, bool] = field(default_factory=dict)
    level_best_times: Dict[str, float] = field(default_factory=dict)
    statistics: PlayerStatistics = field(default_factory=PlayerStatistics)
    unlocked_achievements: List[str] = field(default_factory=list)
    achievement_progress: Dict[str, int] = field(default_factory=dict)
    settings: ProfileSettings = field(default_factory=ProfileSettings)
    location_best_times: Dict[str, float] = field(default_factory=dict)
    favorite_locations: List[str] = field(default_factory=lambda: list(DEFAULT_FAVORITE_LOCATIONS))
    last_location: str = ""
    slot: int = 0
    last_saved: Optional[str] = None
    format_version: int = FORMAT_VERSION

    def __post_init__(self) -> None:
        if not isinstance(self.total_score, int) or self.total_score < 0:
            raise SaveValidationError("total_score must be a non-negative integer")
        if not isinstance(self.player_level, int) or self.player_level < 1:
            raise SaveValidationError("player_level must be an integer >= 1")
        if not isinstance(self.experience, int) or self.experience < 0:
            raise SaveValidationError("experience must be a non-negative integer")
        if not isinstance(self.slot, int) or self.slot < 0:
            raise SaveValidationError("slot must be a non-negative integer")
        self.normalize()

    def normalize(self) -> None:
        """Restore the achievement invariants after external edits.

        Unlocked ids are de-duplicated (first occurrence wins) and removed from
        the in-progress map.
        """
        seen = set()
        unique: List[str] = []
        for achievement_id in self.unlocked_achievements:
            if achievement_id not in seen:
                seen.add(achievement_id)
                unique.append(achievement_id)
        self.unlocked_achievements = unique
        for achievement_id in seen:
            self.achievement_progress.pop(achievement_id, None)

    def is_level_completed(self, level_id: str) -> bool:
        return bool(self.level_completions.get(level_id, False))

    def has_achievement(self, achievement_id: str) -> bool:
        return achievement_id in self.unlocked_achievements

    @property
    def completed_level_count(self) -> int:
        return sum(1 for done in self.level_completions.values() if done)

    def completion_percentage(self) -> float:
        """Weighted completion: main levels 40, collectibles 30, achievements 20, locations 10."""
        completed = 0.0
        weights = {"level1": 10.0, "level2": 15.0, "level3": 15.0}
        for level_id, weight in weights.items():
            if self.is_level_completed(level_id):
                completed += weight
        completed += min(self.total_collectibles_collected / 100.0, 1.0) * 30.0
        completed += min(len(self.unlocked_achievements) / 10.0, 1.0) * 20.0
        completed += min(len(self.location_best_times) / 5.0, 1.0) * 10.0
        return completed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format_version": self.format_version,
            "player_name": self.player_name,
            "player_level": self.player_level,
            "experience": self.experience,
            "total_score": self.total_score,
            "total_play_time": self.total_play_time,
            "total_collectibles_collected": self.total_collectibles_collected,
            "level_completions": dict(self.level_completions),
            "level_best_times": dict(self.level_best_times),
            "statistics": self.statistics.to_dict(),
            "unlocked_achievements": list(self.unlocked_achievements),
            "achievement_progress": dict(self.achievement_progress),
            "settings": self.settings.to_dict(),
            "location_best_times": dict(self.location_best_times),
            "favorite_locations": list(self.favorite_locations),
            "last_location": self.last_location,
            "slot": self.slot,
            "last_saved": self.last_saved,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "SaveProfile":
        if not isinstance(data, dict):
            raise SaveValidationError("Save payload must be a JSON object")
        try:
            return SaveProfile(
                player_name=str(data.get("player_name", "Player")),
                player_level=int(data.get("player_level", 1)),
                experience=int(data.get("experience", 0)),
                total_score=int(data.get("total_score", 0)),
                total_play_time=float(data.get("total_play_time", 0.0)),
                total_collectibles_collected=int(data.get("total_collectibles_collected", 0)),
                level_completions={str(k): bool(v) for k, v in (data.get("level_completions") or {}).items()},
                level_best_times={str(k): float(v) for k, v in (data.get("level_best_times") or {}).items()},
                statistics=PlayerStatistics.from_dict(data.get("statistics") or {}),
                unlocked_achievements=[str(a) for a in (data.get("unlocked_achievements") or [])],
                achievement_progress={str(k): int(v) for k, v in (data.get("achievement_progress") or {}).items()},
                settings=ProfileSettings.from_dict(data.get("settings") or {}),
                location_best_times={str(k): float(v) for k, v in (data.get("location_best_times") or {}).items()},
                favorite_locations=[str(x) for x in data.get("favorite_locations", DEFAULT_FAVORITE_LOCATIONS)],
                last_location=str(data.get("last_location", "")),
                slot=int(data.get("slot", 0)),
                last_saved=data.get("last_saved"),
                format_version=int(data.get("format_version", FORMAT_VERSION)),
            )
        except (TypeError, ValueError, AttributeError) as e:
            raise SaveValidationError(f"Malformed save payload: {e}") from e


@dataclass(frozen=True)
class SlotSummary:
    """Lightweight per-slot metadata for a load/save menu."""

    slot: int
    is_empty: bool = True
    is_current: bool = False
    is_corrupted: bool = False
    player_name: str = ""
    player_level: int = 0
    total_score: int = 0
    play_time: float = 0.0
    last_saved: Optional[str] = None
    completed_levels: int = 0
