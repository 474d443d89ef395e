"""Level unlock graph and the experience curve."""

from .catalog import load_levels
from .graph import AchievementGranter, ProgressionGraph
from .models import Difficulty, LevelNode, ProgressionStats
from .xp_curve import ExperienceCurve

__all__ = [
    "AchievementGranter",
    "Difficulty",
    "ExperienceCurve",
    "LevelNode",
    "ProgressionGraph",
    "ProgressionStats",
    "load_levels",
]
