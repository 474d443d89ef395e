import json
from pathlib import Path

from rollprogress.persistence import (
    ENDLESS_LOCATION_INDEX_KEY,
    ENDLESS_MODE_KEY,
    InMemoryPreferences,
    JsonPreferences,
)


def test_json_preferences_survive_reload(tmp_path: Path):
    path = tmp_path / "prefs.json"
    prefs = JsonPreferences(path)
    prefs.set(ENDLESS_MODE_KEY, True)
    prefs.set(ENDLESS_LOCATION_INDEX_KEY, 3)

    reloaded = JsonPreferences(path)
    assert reloaded.get_bool(ENDLESS_MODE_KEY) is True
    assert reloaded.get_int(ENDLESS_LOCATION_INDEX_KEY) == 3
    assert json.loads(path.read_text(encoding="utf-8")) == {
        ENDLESS_LOCATION_INDEX_KEY: 3,
        ENDLESS_MODE_KEY: True,
    }


def test_json_preferences_delete(tmp_path: Path):
    prefs = JsonPreferences(tmp_path / "prefs.json")
    prefs.set("volume", 5)
    prefs.delete("volume")
    prefs.delete("missing")
    assert not prefs.has("volume")
    assert JsonPreferences(tmp_path / "prefs.json").get("volume") is None


def test_unreadable_preferences_start_empty(tmp_path: Path):
    path = tmp_path / "prefs.json"
    path.write_text("{not json", encoding="utf-8")
    prefs = JsonPreferences(path)
    assert prefs.get("anything", "default") == "default"


def test_typed_getters_coerce_and_fall_back():
    prefs = InMemoryPreferences({"flag": "yes", "count": "seven"})
    assert prefs.get_bool("flag") is True
    assert prefs.get_bool("absent") is False
    assert prefs.get_int("count", 2) == 2
    assert prefs.get_int("absent") == 0
