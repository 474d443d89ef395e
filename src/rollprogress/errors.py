from __future__ import annotations


class ProgressionError(Exception):
    """Base error for progression and persistence failures."""


class SaveError(ProgressionError):
    """Base exception for save/load errors."""


class InvalidSlotError(SaveError):
    """Raised when a slot index is outside the configured range. No I/O is attempted."""

    def __init__(self, slot: int, max_slots: int) -> None:
        super().__init__(f"Invalid save slot: {slot} (valid range 0..{max_slots - 1})")
        self.slot = slot
        self.max_slots = max_slots


class SaveIOError(SaveError):
    """Raised when the storage layer fails to read or write a slot file."""


class SaveValidationError(SaveError):
    """Raised when validation of save data fails."""


class CorruptedSaveError(SaveError):
    """Raised when a slot file exists but cannot be decoded."""


class GraphCycleError(ProgressionError, ValueError):
    """Raised when level requirements or unlock edges form a dependency cycle."""
