from __future__ import annotations

import logging
from importlib import resources
from pathlib import Path
from typing import List, Optional

import yaml

from .models import LevelNode

logger = logging.getLogger(__name__)


def load_levels(path: Optional[Path] = None) -> List[LevelNode]:
    """Load level nodes from a YAML catalog (packaged ``levels.yaml`` by default)."""
    if path is None:
        with resources.files("rollprogress.data").joinpath("levels.yaml").open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    else:
        with Path(path).open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info("Loaded level catalog from %s", path)
    entries = data.get("levels", []) if isinstance(data, dict) else []
    if not isinstance(entries, list):
        raise ValueError("'levels' must be a list")
    return [LevelNode.from_dict(entry) for entry in entries]
