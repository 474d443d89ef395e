class EventType:
    """Centralized event names published on the EventBus."""

    # Emitted to UI / audio collaborators
    ACHIEVEMENT_UNLOCKED = "achievement.unlocked"
    ACHIEVEMENT_PROGRESS = "achievement.progress"
    NOTIFICATION_SHOWN = "notification.shown"
    NOTIFICATION_HIDDEN = "notification.hidden"
    LEVEL_UNLOCKED = "level.unlocked"
    LEVEL_COMPLETED = "level.completed"
    PLAYER_LEVEL_CHANGED = "player.level_changed"
    EXPERIENCE_CHANGED = "experience.changed"
    SAVE_COMPLETED = "save.completed"
    SAVE_ERROR = "save.error"
    SAVE_LOADED = "save.loaded"

    # Produced by the level runtime, consumed by the service and rules
    COLLECTIBLE_COUNT_CHANGED = "collectible.count_changed"
    RUNTIME_LEVEL_FINISHED = "runtime.level_finished"
    LEVEL_STARTED = "runtime.level_started"
    LEVEL_TIME_EXPIRED = "runtime.time_expired"

    # Consumed from gameplay code
    STATISTICS_UPDATED = "statistics.updated"
    GAME_STARTED = "game.started"
    PLAYER_AIRBORNE_CHANGED = "player.airborne_changed"
