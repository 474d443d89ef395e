from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from platformdirs import user_data_dir

logger = logging.getLogger(__name__)

APP_NAME = "RollProgress"
APP_AUTHOR = "RollProgress"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass
class PersistenceConfig:
    save_dir: Optional[Path] = None
    max_slots: int = 5
    autosave: bool = True
    autosave_interval: float = 60.0
    obfuscate: bool = True
    obfuscation_key: str = "RollABallGame2025"
    preferences_file: str = "preferences.json"

    def resolved_save_dir(self) -> Path:
        if self.save_dir is not None:
            return Path(self.save_dir)
        return Path(user_data_dir(appname=APP_NAME, appauthor=APP_AUTHOR)) / "Saves"


@dataclass
class AchievementConfig:
    catalog: Optional[Path] = None
    notifications: bool = True
    notification_duration: float = 3.0


@dataclass
class ExperienceConfig:
    enabled: bool = True
    base: int = 100
    multiplier: float = 1.5
    max_level: int = 50
    time_bonus: int = 50
    perfect_bonus: int = 100


@dataclass
class LevelsConfig:
    catalog: Optional[Path] = None


@dataclass
class RuntimeConfig:
    fixed_sequence: List[str] = field(default_factory=lambda: ["Level1", "Level2", "Level3"])
    endless_scene: str = "GeneratedLevel"
    fallback_table: Dict[str, str] = field(default_factory=dict)


@dataclass
class ProgressionConfig:
    """Engine configuration assembled from packaged defaults and a user YAML overlay."""

    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    achievements: AchievementConfig = field(default_factory=AchievementConfig)
    experience: ExperienceConfig = field(default_factory=ExperienceConfig)
    levels: LevelsConfig = field(default_factory=LevelsConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)

    @staticmethod
    def _load_yaml(path: Path) -> dict:
        with path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    @classmethod
    def _deep_merge(cls, base: dict, overlay: dict) -> dict:
        merged = dict(base)
        for k, v in (overlay or {}).items():
            if isinstance(v, dict) and isinstance(base.get(k), dict):
                merged[k] = cls._deep_merge(base[k], v)
            else:
                merged[k] = v
        return merged

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressionConfig":
        persistence = dict(data.get("persistence") or {})
        if persistence.get("save_dir") is not None:
            persistence["save_dir"] = Path(persistence["save_dir"])
        achievements = dict(data.get("achievements") or {})
        if achievements.get("catalog") is not None:
            achievements["catalog"] = Path(achievements["catalog"])
        levels = dict(data.get("levels") or {})
        if levels.get("catalog") is not None:
            levels["catalog"] = Path(levels["catalog"])
        cfg = cls(
            persistence=PersistenceConfig(**persistence),
            achievements=AchievementConfig(**achievements),
            experience=ExperienceConfig(**(data.get("experience") or {})),
            levels=LevelsConfig(**levels),
            runtime=RuntimeConfig(**(data.get("runtime") or {})),
        )
        cfg.validate()
        return cfg

    def validate(self) -> None:
        if self.persistence.max_slots < 1:
            raise ValueError("persistence.max_slots must be >= 1")
        if self.persistence.autosave_interval <= 0:
            raise ValueError("persistence.autosave_interval must be positive")
        if self.persistence.obfuscate and not self.persistence.obfuscation_key:
            raise ValueError("persistence.obfuscation_key is required when obfuscation is enabled")
        if self.experience.base <= 0 or self.experience.multiplier < 1.0:
            raise ValueError("experience.base must be positive and experience.multiplier >= 1.0")
        if self.experience.max_level < 2:
            raise ValueError("experience.max_level must be >= 2")
        if self.achievements.notification_duration < 0:
            raise ValueError("achievements.notification_duration cannot be negative")

    @classmethod
    def load(cls, user_path: Optional[Path] = None) -> "ProgressionConfig":
        """Load configuration from built-in defaults and an optional user override file.

        Environment overrides applied last:
        - RP_SAVE_DIR: directory for slot files and preferences
        - RP_OBFUSCATE: 1/0 toggle for save obfuscation
        """
        try:
            with resources.files("rollprogress.data").joinpath("defaults.yaml").open("r", encoding="utf-8") as f:
                default_data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.warning("Default configuration not found; falling back to dataclass defaults.")
            default_data = dataclasses.asdict(cls())

        user_data: dict = {}
        if user_path is not None:
            if user_path.exists():
                user_data = cls._load_yaml(user_path)
                logger.info("Loaded user configuration from %s", user_path)
            else:
                logger.warning("User configuration file not found: %s", user_path)

        merged = cls._deep_merge(default_data, user_data)
        merged = cls._deep_merge(merged, _env_overrides())
        cfg = cls.from_dict(merged)
        logger.debug("Configuration merged: %s", cfg)
        return cfg


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    save_dir = os.getenv("RP_SAVE_DIR")
    if save_dir:
        overrides.setdefault("persistence", {})["save_dir"] = save_dir
    obfuscate = os.getenv("RP_OBFUSCATE", "").strip().lower()
    if obfuscate in _TRUTHY:
        overrides.setdefault("persistence", {})["obfuscate"] = True
    elif obfuscate in _FALSY:
        overrides.setdefault("persistence", {})["obfuscate"] = False
    elif obfuscate:
        logger.warning("Ignoring unrecognised RP_OBFUSCATE value %r", obfuscate)
    return overrides
