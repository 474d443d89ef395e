from __future__ import annotations

import logging
from importlib import resources
from pathlib import Path
from typing import List, Optional

import yaml

from .models import AchievementDef

logger = logging.getLogger(__name__)


def load_achievements(path: Optional[Path] = None) -> List[AchievementDef]:
    """Load achievement definitions from a YAML catalog.

    Without a path the packaged ``achievements.yaml`` is used. The document
    is a mapping with an ``achievements`` list; each entry maps onto
    :meth:`AchievementDef.from_dict`.
    """
    if path is None:
        with resources.files("rollprogress.data").joinpath("achievements.yaml").open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    else:
        with Path(path).open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info("Loaded achievement catalog from %s", path)
    entries = data.get("achievements", []) if isinstance(data, dict) else []
    if not isinstance(entries, list):
        raise ValueError("'achievements' must be a list")
    return [AchievementDef.from_dict(entry) for entry in entries]
