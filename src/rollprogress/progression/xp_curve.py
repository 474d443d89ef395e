from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

logger = logging.getLogger(__name__)


@dataclass
class ExperienceCurve:
    """Geometric experience curve mapping player levels to cumulative experience.

    Level indexing:
    - Reaching level ``n + 1`` from level ``n`` costs ``round(base * multiplier^(n-1))``.
    - thresholds[level] = total cumulative experience required to reach that level.
      thresholds[1] == 0.
    - ``max_level`` is the level cap; there is no threshold to go beyond it.

    Both the level-up check and any UI preview must go through
    :meth:`experience_for` so the two never disagree.
    """

    base: int = 100
    multiplier: float = 1.5
    max_level: int = 50
    thresholds: List[int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.base <= 0:
            raise ValueError("Experience base must be positive")
        if self.multiplier < 1.0:
            raise ValueError("Experience multiplier must be >= 1.0")
        if self.max_level < 2:
            raise ValueError("max_level must be >= 2")
        thresholds: List[int] = [0] * (self.max_level + 1)
        cumulative = 0
        for level in range(1, self.max_level):
            cumulative += self.step(level)
            thresholds[level + 1] = cumulative
        self.thresholds = thresholds

    def step(self, level: int) -> int:
        """Experience needed to go from ``level`` to ``level + 1``."""
        return int(round(self.base * (self.multiplier ** (level - 1))))

    def experience_for(self, level: int) -> int:
        """Cumulative experience required to reach ``level`` (clamped to the cap)."""
        if level < 1:
            raise ValueError("Level must be >= 1")
        return self.thresholds[min(level, self.max_level)]

    def level_for(self, total: int) -> int:
        """Binary search for the highest level whose threshold is <= total."""
        lo, hi = 1, self.max_level
        while lo <= hi:
            mid = (lo + hi) // 2
            if self.thresholds[mid] <= total:
                lo = mid + 1
            else:
                hi = mid - 1
        return hi

    def to_next(self, total: int) -> int:
        """Experience still missing for the next level; 0 at the cap."""
        level = self.level_for(total)
        if level >= self.max_level:
            return 0
        return self.thresholds[level + 1] - total

    def into_level(self, total: int) -> int:
        """Experience earned since the current level was reached."""
        return total - self.experience_for(self.level_for(total))
