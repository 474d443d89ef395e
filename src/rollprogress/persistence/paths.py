from __future__ import annotations

from pathlib import Path

SLOT_FILE_PATTERN = "save_slot_{slot:02d}.dat"


def slot_filename(slot: int) -> str:
    return SLOT_FILE_PATTERN.format(slot=slot)


def slot_path(save_dir: Path, slot: int) -> Path:
    return Path(save_dir) / slot_filename(slot)
