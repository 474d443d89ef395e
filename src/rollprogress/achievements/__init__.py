"""Achievement definitions, the unlock state machine and notification queue."""

from .catalog import load_achievements
from .models import AchievementCategory, AchievementDef, AchievementKind, AchievementRarity
from .notifications import Notification, NotificationQueue
from .tracker import AchievementTracker

__all__ = [
    "AchievementCategory",
    "AchievementDef",
    "AchievementKind",
    "AchievementRarity",
    "AchievementTracker",
    "Notification",
    "NotificationQueue",
    "load_achievements",
]
