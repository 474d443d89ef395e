"""Per-level collectible tracking, completion latch and next-scene resolution."""

from .level_tracker import CollectibleRef, LevelCompletion, LevelConfig, LevelRuntimeTracker
from .sequence import LevelSequence

__all__ = [
    "CollectibleRef",
    "LevelCompletion",
    "LevelConfig",
    "LevelRuntimeTracker",
    "LevelSequence",
]
