"""Save-slot persistence.

This package provides:
- The SaveProfile data model persisted per slot
- Canonical JSON encoding with format versioning
- Keyed XOR + base64 obfuscation (not encryption, see obfuscation.py)
- PersistenceStore: atomic slot I/O, dirty tracking, export/import
- AutosaveScheduler: tick-driven periodic flush
- Preferences: key/value flags that live outside the slots
"""

from .autosave import AutosaveScheduler
from .models import FORMAT_VERSION, PlayerStatistics, ProfileSettings, SaveProfile, SlotSummary
from .preferences import (
    ENDLESS_LOCATION_INDEX_KEY,
    ENDLESS_MODE_KEY,
    InMemoryPreferences,
    JsonPreferences,
    Preferences,
)
from .store import CloudSync, PersistenceStore

__all__ = [
    "FORMAT_VERSION",
    "AutosaveScheduler",
    "CloudSync",
    "ENDLESS_LOCATION_INDEX_KEY",
    "ENDLESS_MODE_KEY",
    "InMemoryPreferences",
    "JsonPreferences",
    "PersistenceStore",
    "PlayerStatistics",
    "Preferences",
    "ProfileSettings",
    "SaveProfile",
    "SlotSummary",
]
