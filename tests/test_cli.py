import json
from pathlib import Path

import pytest

from rollprogress.cli import main
from rollprogress.config import PersistenceConfig
from rollprogress.events import EventBus
from rollprogress.persistence import PersistenceStore, SaveProfile


@pytest.fixture()
def save_dir(tmp_path: Path, monkeypatch) -> Path:
    d = tmp_path / "saves"
    monkeypatch.setenv("RP_SAVE_DIR", str(d))
    monkeypatch.delenv("RP_OBFUSCATE", raising=False)
    return d


def _seed(save_dir: Path, slot: int, **fields) -> None:
    store = PersistenceStore(PersistenceConfig(save_dir=save_dir), EventBus())
    store.save(slot, SaveProfile(**fields))


def test_slots_lists_every_slot(save_dir: Path, capsys):
    _seed(save_dir, 1, player_name="Ada", total_score=300)
    assert main(["slots"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert len(out) == 5
    assert out[0] == "[00] empty"
    assert out[1].startswith("[01] Ada L1 score=300")


def test_export_then_import(save_dir: Path, tmp_path: Path, capsys):
    _seed(save_dir, 0, player_name="Ada", level_completions={"tutorial": True})
    target = tmp_path / "backup.json"
    assert main(["export", "--slot", "0", "-o", str(target)]) == 0
    assert json.loads(target.read_text(encoding="utf-8"))["player_name"] == "Ada"

    assert main(["import", str(target), "--slot", "2"]) == 0
    store = PersistenceStore(PersistenceConfig(save_dir=save_dir), EventBus())
    restored = store.read_slot(2)
    assert restored.player_name == "Ada"
    assert restored.slot == 2


def test_export_empty_slot_fails(save_dir: Path, capsys):
    assert main(["export", "--slot", "3"]) == 1
    assert "error" in capsys.readouterr().err


def test_invalid_slot_fails(save_dir: Path, capsys):
    assert main(["delete", "--slot", "9"]) == 1
    assert "Invalid save slot" in capsys.readouterr().err


def test_status_and_delete(save_dir: Path, capsys):
    _seed(save_dir, 0, player_name="Ada", experience=120, player_level=2)
    assert main(["status", "--slot", "0"]) == 0
    out = capsys.readouterr().out
    assert "Ada (level 2, 120 xp)" in out
    assert "Next up:       Tutorial" in out

    assert main(["delete", "--slot", "0"]) == 0
    assert not (save_dir / "save_slot_00.dat").exists()
    assert main(["delete", "--slot", "0"]) == 0
    assert "already empty" in capsys.readouterr().out
