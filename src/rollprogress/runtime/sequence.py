from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional

from ..config import RuntimeConfig

logger = logging.getLogger(__name__)


class LevelSequence:
    """Static scene ordering used when neither an override nor the graph decides.

    The explicit table wins; otherwise a scene in the fixed sequence leads to
    the one after it, and the last fixed scene leads to the endless scene.
    Scenes whose name starts with the endless scene name repeat it.
    """

    def __init__(
        self,
        fixed_sequence: Iterable[str],
        endless_scene: str = "GeneratedLevel",
        table: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.fixed_sequence: List[str] = list(fixed_sequence)
        self.endless_scene = endless_scene
        self.table: Dict[str, str] = dict(table or {})

    @classmethod
    def from_config(cls, config: RuntimeConfig) -> "LevelSequence":
        return cls(config.fixed_sequence, config.endless_scene, config.fallback_table)

    def next_scene(self, scene: str) -> Optional[str]:
        if scene in self.table:
            return self.table[scene]
        if self.is_endless(scene):
            return self.endless_scene
        if scene in self.fixed_sequence:
            index = self.fixed_sequence.index(scene)
            if index + 1 < len(self.fixed_sequence):
                return self.fixed_sequence[index + 1]
            return self.endless_scene
        logger.debug("No static successor for scene %r", scene)
        return None

    def is_last_fixed(self, scene: str) -> bool:
        return bool(self.fixed_sequence) and scene == self.fixed_sequence[-1]

    def is_endless(self, scene: str) -> bool:
        return bool(self.endless_scene) and scene.startswith(self.endless_scene)
