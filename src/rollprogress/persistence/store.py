from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Protocol, runtime_checkable

from ..config import PersistenceConfig
from ..errors import CorruptedSaveError, InvalidSlotError, SaveError, SaveIOError
from ..events import EventBus, EventType
from ..utils.fs import atomic_write_text, ensure_dir
from .codec import dump_payload, encode_profile, decode_profile, load_payload
from .models import SaveProfile, SlotSummary, utc_now_iso
from .paths import slot_path

logger = logging.getLogger(__name__)


@runtime_checkable
class CloudSync(Protocol):
    """Optional remote mirror of the active profile.

    Only the plug-in point is defined here; no transport ships with the engine.
    """

    def push(self, slot: int, payload: str) -> None:
        ...


class PersistenceStore:
    """Owns every slot file and the active SaveProfile.

    Exactly one instance should exist per process; it is only ever called
    from the game-loop thread, so no locking is done here.
    """

    def __init__(
        self,
        config: PersistenceConfig,
        bus: EventBus,
        cloud_sync: Optional[CloudSync] = None,
    ) -> None:
        self.config = config
        self.bus = bus
        self.cloud_sync = cloud_sync
        self.save_dir = ensure_dir(config.resolved_save_dir())
        self._profile = SaveProfile()
        self._active_slot = 0
        self._dirty = False

    # Properties

    @property
    def profile(self) -> SaveProfile:
        return self._profile

    @property
    def active_slot(self) -> int:
        return self._active_slot

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def max_slots(self) -> int:
        return self.config.max_slots

    @property
    def _key(self) -> Optional[str]:
        return self.config.obfuscation_key if self.config.obfuscate else None

    def slot_path(self, slot: int) -> Path:
        return slot_path(self.save_dir, slot)

    def mark_dirty(self) -> None:
        self._dirty = True

    # Save / load

    def save(self, slot: Optional[int] = None, profile: Optional[SaveProfile] = None) -> None:
        """Serialize a profile (default: the active one) into a slot file.

        Raises InvalidSlotError before touching the disk, SaveIOError when the
        write fails. Both are also published as ``save.error``. Writing the
        active profile into another slot leaves the active slot, its dirty flag
        and the in-memory profile untouched.
        """
        slot = self._active_slot if slot is None else slot
        self._require_slot(slot)
        source = self._profile if profile is None else profile
        snapshot = replace(source, slot=slot, last_saved=utc_now_iso())
        payload = dump_payload(snapshot, self._key)
        path = self.slot_path(slot)
        try:
            atomic_write_text(path, payload)
        except OSError as e:
            message = f"Failed to save slot {slot}: {e}"
            logger.error(message)
            self._report_error(slot, message)
            raise SaveIOError(message) from e
        if source is not self._profile or slot == self._active_slot:
            source.slot = slot
            source.last_saved = snapshot.last_saved
        if source is self._profile and slot == self._active_slot:
            self._dirty = False
        logger.info("Game saved to slot %d (%s)", slot, path)
        self.bus.publish(EventType.SAVE_COMPLETED, {"slot": slot, "profile": snapshot})
        self._push_to_cloud(slot, payload)

    def read_slot(self, slot: int) -> SaveProfile:
        """Decode a slot file without touching the active state.

        Raises FileNotFoundError when the slot is empty and CorruptedSaveError
        when the file cannot be decoded.
        """
        self._check_slot(slot)
        path = self.slot_path(slot)
        try:
            payload = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise
        except UnicodeDecodeError as e:
            raise CorruptedSaveError(f"Slot {slot} is not valid UTF-8 text: {e}") from e
        except OSError as e:
            raise SaveIOError(f"Failed to read slot {slot}: {e}") from e
        return load_payload(payload, self._key)

    def load(self, slot: int) -> SaveProfile:
        """Make ``slot`` active and return its profile.

        A missing file yields a fresh default profile (first run). A corrupted
        file is reported through ``save.error`` and also yields a fresh default
        profile, flagged dirty so the next save overwrites the bad file.
        """
        self._require_slot(slot)
        try:
            profile = self.read_slot(slot)
        except FileNotFoundError:
            logger.info("No save file found in slot %d, creating new save", slot)
            self._activate(self._fresh_profile(slot), slot, dirty=True)
            return self._profile
        except (CorruptedSaveError, SaveIOError) as e:
            message = f"Failed to load slot {slot}: {e}"
            logger.warning("%s; falling back to a default profile", message)
            self._report_error(slot, message)
            self._activate(self._fresh_profile(slot), slot, dirty=True)
            return self._profile
        profile.slot = slot
        self._activate(profile, slot, dirty=False)
        logger.info("Game loaded from slot %d", slot)
        return self._profile

    def load_most_recent(self) -> SaveProfile:
        """Load the slot whose file was written last; slot 0 if none exist."""
        most_recent, newest = 0, None
        for slot in range(self.max_slots):
            path = self.slot_path(slot)
            if path.exists():
                mtime = path.stat().st_mtime
                if newest is None or mtime > newest:
                    newest, most_recent = mtime, slot
        return self.load(most_recent)

    def switch_slot(self, slot: int) -> SaveProfile:
        self._require_slot(slot)
        if slot == self._active_slot:
            return self._profile
        if self._dirty:
            self.flush_if_dirty(reason="slot switch")
        return self.load(slot)

    def delete_slot(self, slot: int) -> bool:
        """Remove a slot file. Returns True when a file was deleted."""
        self._require_slot(slot)
        path = self.slot_path(slot)
        if not path.exists():
            return False
        try:
            path.unlink()
        except OSError as e:
            message = f"Failed to delete slot {slot}: {e}"
            logger.error(message)
            self._report_error(slot, message)
            raise SaveIOError(message) from e
        logger.info("Deleted save slot %d", slot)
        if slot == self._active_slot:
            self._activate(self._fresh_profile(slot), slot, dirty=True)
        return True

    def flush_if_dirty(self, reason: str = "autosave") -> bool:
        """Save the active profile when dirty. Failures are logged, never raised.

        Returns True when a save happened and succeeded.
        """
        if not self._dirty:
            return False
        try:
            self.save()
        except SaveError as e:
            logger.warning("Save on %s failed; will retry later: %s", reason, e)
            return False
        logger.debug("Flushed dirty profile (%s)", reason)
        return True

    # Slots overview

    def list_slots(self) -> List[SlotSummary]:
        summaries: List[SlotSummary] = []
        for slot in range(self.max_slots):
            is_current = slot == self._active_slot
            if not self.slot_path(slot).exists():
                summaries.append(SlotSummary(slot=slot, is_empty=True, is_current=is_current))
                continue
            try:
                data = self.read_slot(slot)
            except (CorruptedSaveError, SaveIOError) as e:
                logger.warning("Failed to read slot %d metadata: %s", slot, e)
                summaries.append(SlotSummary(slot=slot, is_empty=False, is_current=is_current, is_corrupted=True))
                continue
            summaries.append(
                SlotSummary(
                    slot=slot,
                    is_empty=False,
                    is_current=is_current,
                    player_name=data.player_name,
                    player_level=data.player_level,
                    total_score=data.total_score,
                    play_time=data.total_play_time,
                    last_saved=data.last_saved,
                    completed_levels=len(data.level_completions),
                )
            )
        return summaries

    # Export / import

    def export_json(self) -> str:
        """Human-readable backup of the active profile (never obfuscated)."""
        return encode_profile(self._profile)

    def import_json(self, text: str) -> SaveProfile:
        """Replace the active profile with an exported document and mark it dirty."""
        try:
            profile = decode_profile(text)
        except SaveError as e:
            message = f"Import failed: {e}"
            logger.error(message)
            self._report_error(self._active_slot, message)
            raise CorruptedSaveError(message) from e
        profile.slot = self._active_slot
        self._activate(profile, self._active_slot, dirty=True)
        logger.info("Save data imported into slot %d", self._active_slot)
        return self._profile

    # Internal utilities

    def _check_slot(self, slot: int) -> None:
        if not isinstance(slot, int) or not (0 <= slot < self.max_slots):
            raise InvalidSlotError(slot, self.max_slots)

    def _require_slot(self, slot: int) -> None:
        try:
            self._check_slot(slot)
        except InvalidSlotError as e:
            logger.error("%s", e)
            self._report_error(slot, str(e))
            raise

    def _fresh_profile(self, slot: int) -> SaveProfile:
        return SaveProfile(slot=slot)

    def _activate(self, profile: SaveProfile, slot: int, dirty: bool) -> None:
        self._profile = profile
        self._active_slot = slot
        self._dirty = dirty
        self.bus.publish(EventType.SAVE_LOADED, {"slot": slot, "profile": profile})

    def _report_error(self, slot: int, message: str) -> None:
        self.bus.publish(EventType.SAVE_ERROR, {"slot": slot, "message": message})

    def _push_to_cloud(self, slot: int, payload: str) -> None:
        if self.cloud_sync is None:
            return
        try:
            self.cloud_sync.push(slot, payload)
        except Exception:  # noqa: BLE001 - remote mirror is best effort
            logger.exception("Cloud sync push failed for slot %d", slot)
