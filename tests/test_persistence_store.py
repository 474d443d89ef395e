import logging
import os
from pathlib import Path

import pytest

from rollprogress.config import PersistenceConfig
from rollprogress.errors import CorruptedSaveError, InvalidSlotError, SaveIOError
from rollprogress.events import EventType
from rollprogress.persistence import PersistenceStore, SaveProfile
from rollprogress.persistence.obfuscation import obfuscate


def _filled_profile() -> SaveProfile:
    profile = SaveProfile(player_name="Ada", player_level=3, experience=260, total_score=4200)
    profile.level_completions = {"tutorial": True, "level1": True}
    profile.level_best_times = {"level1": 42.5}
    profile.achievement_progress = {"collect_10": 7, "jump_master": 33}
    profile.unlocked_achievements = ["first_steps", "collector"]
    profile.location_best_times = {"Leipzig, Markt": 88.0}
    profile.statistics.total_jumps = 33
    profile.statistics.max_speed = 17.5
    profile.total_collectibles_collected = 7
    return profile


def test_save_load_round_trip(store: PersistenceStore):
    profile = _filled_profile()
    store.save(1, profile)
    loaded = store.load(1)
    assert loaded == profile
    assert store.active_slot == 1
    assert not store.is_dirty


def test_slot_file_name_and_obfuscation(store: PersistenceStore):
    store.save(3, _filled_profile())
    path = store.save_dir / "save_slot_03.dat"
    assert path.exists()
    assert "Ada" not in path.read_text(encoding="utf-8")


def test_plain_json_when_obfuscation_disabled(tmp_path: Path, bus):
    store = PersistenceStore(PersistenceConfig(save_dir=tmp_path, obfuscate=False), bus)
    store.save(0, _filled_profile())
    assert '"player_name": "Ada"' in (tmp_path / "save_slot_00.dat").read_text(encoding="utf-8")


def test_missing_slot_loads_default_dirty_profile(store: PersistenceStore, recorder):
    recorder.listen(EventType.SAVE_LOADED, EventType.SAVE_ERROR)
    profile = store.load(2)
    assert profile == SaveProfile(slot=2)
    assert store.is_dirty
    assert recorder.names() == [EventType.SAVE_LOADED]


def test_corrupted_slot_falls_back_without_raising(store: PersistenceStore, recorder, caplog):
    store.save(0, _filled_profile())
    path = store.slot_path(0)
    data = path.read_bytes()
    path.write_bytes(data[: len(data) // 2] + b"#garbage")
    recorder.listen(EventType.SAVE_ERROR)

    with caplog.at_level(logging.WARNING):
        profile = store.load(0)

    assert profile.player_name == "Player"
    assert profile.total_score == 0
    assert store.is_dirty
    errors = recorder.payloads(EventType.SAVE_ERROR)
    assert len(errors) == 1 and errors[0]["slot"] == 0
    with pytest.raises(CorruptedSaveError):
        store.read_slot(0)


def test_corrupted_slot_is_overwritten_by_next_save(store: PersistenceStore):
    store.slot_path(0).write_text("definitely not a save", encoding="utf-8")
    store.load(0)
    assert store.flush_if_dirty()
    assert store.read_slot(0).player_name == "Player"


def test_invalid_slot_rejected_before_io(store: PersistenceStore, recorder):
    recorder.listen(EventType.SAVE_ERROR)
    with pytest.raises(InvalidSlotError):
        store.save(5)
    with pytest.raises(InvalidSlotError):
        store.load(-1)
    assert not any(store.save_dir.iterdir())
    assert len(recorder.payloads(EventType.SAVE_ERROR)) == 2


def test_save_publishes_completion_and_clears_dirty(store: PersistenceStore, recorder):
    recorder.listen(EventType.SAVE_COMPLETED)
    store.mark_dirty()
    store.mark_dirty()
    store.save()
    assert not store.is_dirty
    assert store.profile.last_saved is not None
    [payload] = recorder.payloads(EventType.SAVE_COMPLETED)
    assert payload["slot"] == 0


def test_save_to_other_slot_keeps_active_slot(store: PersistenceStore):
    store.load(0)
    store.save()
    store.profile.total_score = 999
    store.mark_dirty()

    store.save(2)

    assert store.active_slot == 0
    assert store.profile.slot == 0
    assert store.is_dirty
    assert store.read_slot(2).total_score == 999
    assert store.read_slot(2).slot == 2
    assert store.read_slot(0).total_score == 0

    assert store.flush_if_dirty()
    assert store.read_slot(0).total_score == 999
    assert store.read_slot(0).slot == 0


def test_semantically_invalid_slot_falls_back_to_default(store: PersistenceStore, recorder):
    key = store.config.obfuscation_key
    store.slot_path(0).write_text(obfuscate('{"format_version": "v1"}', key), encoding="utf-8")
    store.slot_path(1).write_text(obfuscate('{"format_version": null}', key), encoding="utf-8")
    recorder.listen(EventType.SAVE_ERROR)

    profile = store.load(0)

    assert profile == SaveProfile(slot=0)
    assert store.is_dirty
    assert len(recorder.payloads(EventType.SAVE_ERROR)) == 1
    summaries = store.list_slots()
    assert summaries[0].is_corrupted and summaries[1].is_corrupted
    with pytest.raises(CorruptedSaveError):
        store.read_slot(1)


def test_write_failure_raises_and_reports(store: PersistenceStore, recorder, monkeypatch):
    def failing_write(path, text):
        raise OSError("disk full")

    monkeypatch.setattr("rollprogress.persistence.store.atomic_write_text", failing_write)
    recorder.listen(EventType.SAVE_ERROR)
    store.mark_dirty()
    with pytest.raises(SaveIOError):
        store.save()
    assert store.is_dirty
    assert store.profile.last_saved is None
    assert "disk full" in recorder.payloads(EventType.SAVE_ERROR)[0]["message"]
    # flush swallows the failure so the game loop keeps running
    assert store.flush_if_dirty() is False
    assert store.is_dirty


def test_list_slots_reports_metadata_without_mutation(store: PersistenceStore):
    store.save(1, _filled_profile())
    store.slot_path(2).write_text("garbage", encoding="utf-8")
    before = store.profile

    summaries = store.list_slots()

    assert len(summaries) == store.max_slots
    assert summaries[0].is_empty and summaries[0].is_current
    assert summaries[1].player_name == "Ada"
    assert summaries[1].completed_levels == 2
    assert summaries[2].is_corrupted
    assert store.profile is before


def test_export_import_round_trip(store: PersistenceStore, recorder):
    store.save(1, _filled_profile())
    store.load(1)
    exported = store.export_json()

    store.load(0)
    imported = store.import_json(exported)
    assert imported.player_name == "Ada"
    assert imported.slot == 0
    assert store.is_dirty

    recorder.listen(EventType.SAVE_ERROR)
    with pytest.raises(CorruptedSaveError):
        store.import_json("{broken")
    assert store.profile.player_name == "Ada"
    assert len(recorder.payloads(EventType.SAVE_ERROR)) == 1


def test_delete_slot(store: PersistenceStore):
    store.load(1)
    store.profile.player_name = "Ada"
    store.save()
    assert store.delete_slot(1)
    assert not store.slot_path(1).exists()
    assert store.profile.player_name == "Player"
    assert store.is_dirty
    assert store.delete_slot(1) is False


def test_load_most_recent(store: PersistenceStore):
    store.save(1, SaveProfile(player_name="Old"))
    store.save(3, SaveProfile(player_name="New"))
    os.utime(store.slot_path(1), (1_000_000, 1_000_000))
    assert store.load_most_recent().player_name == "New"
    assert store.active_slot == 3


def test_switch_slot_flushes_dirty_profile(store: PersistenceStore):
    store.load(0)
    store.profile.total_score = 10
    store.mark_dirty()
    store.switch_slot(1)
    assert store.active_slot == 1
    assert store.read_slot(0).total_score == 10


class _RecordingCloud:
    def __init__(self):
        self.pushed = []

    def push(self, slot, payload):
        self.pushed.append(slot)


class _BrokenCloud:
    def push(self, slot, payload):
        raise ConnectionError("offline")


def test_cloud_sync_push_after_save(persistence_config, bus):
    cloud = _RecordingCloud()
    store = PersistenceStore(persistence_config, bus, cloud_sync=cloud)
    store.save(2)
    assert cloud.pushed == [2]


def test_cloud_sync_failure_is_only_logged(persistence_config, bus, caplog):
    store = PersistenceStore(persistence_config, bus, cloud_sync=_BrokenCloud())
    with caplog.at_level(logging.ERROR):
        store.save(0)
    assert store.slot_path(0).exists()
    assert "Cloud sync push failed" in caplog.text
