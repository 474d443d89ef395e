from pathlib import Path

import pytest

from rollprogress.config import ProgressionConfig
from rollprogress.events import EventType
from rollprogress.persistence import InMemoryPreferences, JsonPreferences
from rollprogress.runtime import LevelConfig
from rollprogress.service import ProgressionService, StatisticsSnapshot


def _make_service(save_dir: Path, **kwargs) -> ProgressionService:
    config = ProgressionConfig.load()
    config.persistence.save_dir = save_dir
    return ProgressionService.create(config, preferences=InMemoryPreferences(), **kwargs)


@pytest.fixture()
def service(tmp_path: Path) -> ProgressionService:
    svc = _make_service(tmp_path)
    svc.start(0)
    return svc


def _play(service: ProgressionService, config: LevelConfig, seconds: float, pickups=("c1", "c2")) -> None:
    service.runtime.begin_level(config, pickups)
    service.tick(seconds)
    for pickup in pickups:
        service.runtime.collect(pickup)


def test_start_loads_fresh_profile(service: ProgressionService):
    assert service.profile.player_name == "Player"
    assert [n.id for n in service.graph.unlocked()] == ["tutorial"]
    assert service.store.is_dirty


def test_game_started_unlocks_first_steps(service: ProgressionService):
    service.notify_game_started()
    assert service.tracker.get("first_steps").unlocked
    assert service.profile.total_score == 100
    assert service.notifications.current.achievement.id == "first_steps"


def test_completing_a_level_flows_through_every_component(service: ProgressionService, recorder_for):
    events = recorder_for(service)
    _play(service, LevelConfig("tutorial", scene="Level1", level_index=0), 20.0)

    profile = service.profile
    assert profile.level_completions == {"tutorial": True}
    assert profile.level_best_times == {"tutorial": 20.0}
    assert profile.total_collectibles_collected == 2
    # 500 // 10 + time bonus + perfect bonus
    assert profile.experience == 200
    assert profile.player_level == 2
    assert service.graph.get("level1").unlocked
    assert service.tracker.get("collector").unlocked
    assert service.tracker.get("level_complete").unlocked
    assert service.tracker.get("collect_10").progress == 2
    assert service.store.is_dirty

    names = events.names()
    assert names.index(EventType.RUNTIME_LEVEL_FINISHED) < names.index(EventType.LEVEL_COMPLETED)
    assert names.index(EventType.LEVEL_COMPLETED) < names.index(EventType.LEVEL_UNLOCKED)
    assert service.next_scene() == "Level1"


def test_quick_first_level_achievements(service: ProgressionService):
    _play(service, LevelConfig("level1", scene="Level1", level_index=1), 10.0)
    assert service.tracker.get("level_1_complete").unlocked
    assert service.tracker.get("quick_level_1").unlocked
    assert service.tracker.get("all_levels").progress == 1


def test_location_level_records_best_time_and_exploration(service: ProgressionService):
    config = LevelConfig("osm_explorer", scene="Level_OSM", location="Leipzig, Markt")
    _play(service, config, 90.0)
    _play(service, config, 120.0)

    profile = service.profile
    assert profile.location_best_times == {"Leipzig, Markt": 90.0}
    assert profile.last_location == "Leipzig, Markt"
    assert service.tracker.get("explorer").unlocked
    assert service.tracker.get("hometown_hero").unlocked
    assert service.tracker.get("globe_trotter").progress == 1
    assert profile.total_collectibles_collected == 4


def test_statistics_fold_into_profile_and_rules(service: ProgressionService):
    service.report_statistics(StatisticsSnapshot(jumps=100, max_speed=25.0, play_time=50.0, flight_time=12.4))
    profile = service.profile
    assert profile.statistics.total_jumps == 100
    assert profile.total_play_time == 50.0
    assert service.tracker.get("jump_master").unlocked
    assert service.tracker.get("speed_demon").unlocked
    assert service.tracker.get("sonic_boom").progress == 25
    assert service.tracker.get("frequent_flyer").progress == 12
    assert not service.tracker.get("double_jump").unlocked

    # A later snapshot of the same session replaces, not adds
    service.report_statistics(StatisticsSnapshot(jumps=110, max_speed=10.0, play_time=60.0))
    assert profile.statistics.total_jumps == 110
    assert profile.statistics.max_speed == 25.0


def test_autosave_on_tick(service: ProgressionService):
    assert service.store.is_dirty
    service.tick(59.0)
    assert not service.store.slot_path(0).exists()
    service.tick(1.0)
    assert service.store.slot_path(0).exists()
    assert not service.store.is_dirty


def test_focus_loss_flushes(service: ProgressionService):
    service.on_focus_changed(True)
    assert service.store.is_dirty
    service.on_focus_changed(False)
    assert not service.store.is_dirty


def test_shutdown_flushes_and_detaches(service: ProgressionService):
    service.shutdown()
    assert service.store.slot_path(0).exists()
    service.notify_game_started()
    assert not service.tracker.get("first_steps").unlocked
    service.shutdown()


def test_progress_survives_restart(tmp_path: Path):
    first = _make_service(tmp_path)
    first.start(0)
    first.notify_game_started()
    _play(first, LevelConfig("tutorial", scene="Level1"), 30.0)
    first.report_statistics(StatisticsSnapshot(jumps=40))
    first.shutdown()

    second = _make_service(tmp_path)
    profile = second.start()
    assert profile.player_level == 2
    assert second.tracker.get("first_steps").unlocked
    assert second.tracker.get("jump_master").progress == 40
    assert second.graph.get("tutorial").completed
    assert second.graph.get("level1").unlocked

    # New session counters add to the restored totals
    second.report_statistics(StatisticsSnapshot(jumps=5))
    assert second.profile.statistics.total_jumps == 45


def test_import_rehydrates_components(service: ProgressionService, tmp_path: Path):
    service.notify_game_started()
    exported = service.store.export_json()

    other = _make_service(tmp_path / "other")
    other.start(0)
    assert not other.tracker.get("first_steps").unlocked
    other.store.import_json(exported)
    assert other.tracker.get("first_steps").unlocked


def test_airborne_toggle(service: ProgressionService, recorder_for):
    events = recorder_for(service)
    service.set_airborne(True)
    service.set_airborne(True)
    service.set_airborne(False)
    assert events.payloads(EventType.PLAYER_AIRBORNE_CHANGED) == [True, False]


def test_default_preferences_live_next_to_saves(tmp_path: Path):
    config = ProgressionConfig.load()
    config.persistence.save_dir = tmp_path
    svc = ProgressionService.create(config)
    assert isinstance(svc.preferences, JsonPreferences)
    assert svc.preferences.path == tmp_path / "preferences.json"
