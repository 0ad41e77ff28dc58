from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import pandas as pd

from pizarro.aggregate import aggregate, group_keys


@dataclass(frozen=True)
class DrillDown:
    """Interactive selection along a fixed hierarchy of columns.

    ``selected[i]`` is the chosen value for ``levels[i]``; a selection always
    covers a prefix of the hierarchy. Scoping only narrows an already filtered
    frame, it never goes back to the full dataset.
    """

    levels: Tuple[str, ...]
    selected: Tuple[str, ...] = ()

    @property
    def depth(self) -> int:
        return len(self.selected)

    @property
    def is_active(self) -> bool:
        return bool(self.selected)

    def toggle(self, level: str, value: str) -> "DrillDown":
        i = self.levels.index(level)
        if i > len(self.selected):
            # parent level not selected yet
            return self
        if i < len(self.selected) and self.selected[i] == value:
            return DrillDown(self.levels, self.selected[:i])
        return DrillDown(self.levels, self.selected[:i] + (value,))

    @classmethod
    def from_path(cls, levels: Tuple[str, ...], path: Sequence[str]) -> "DrillDown":
        """Select ``path[i]`` at ``levels[i]``; extra or blank values are ignored."""
        drill = cls(tuple(levels))
        for level, value in zip(levels, path):
            if not value:
                break
            drill = drill.toggle(level, value)
        return drill

    def clear(self) -> "DrillDown":
        return DrillDown(self.levels)

    def scope(self, frame: pd.DataFrame, depth: Optional[int] = None) -> pd.DataFrame:
        depth = self.depth if depth is None else min(depth, self.depth)
        if frame.empty or depth == 0:
            return frame
        mask = pd.Series(True, index=frame.index)
        for level, value in zip(self.levels[:depth], self.selected[:depth]):
            mask &= group_keys(frame[level]) == value
        return frame[mask]

    def table(self, frame: pd.DataFrame, level: str, value: str) -> pd.DataFrame:
        """Aggregate ``level`` within the scope of the selections above it."""
        i = self.levels.index(level)
        return aggregate(self.scope(frame, depth=i), level, value)

    @property
    def distribution_level(self) -> str:
        return self.levels[min(self.depth, len(self.levels) - 1)]

    @property
    def label(self) -> Optional[str]:
        return self.selected[-1] if self.selected else None
