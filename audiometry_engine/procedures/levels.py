"""Ordinal hearing level ladder with index-based stepping."""
from typing import Sequence, Tuple

from ..utils.defaults import HEARING_LEVELS


class HearingLevelScale:
    """
    Fixed, ordered ladder of presentable hearing levels (dB HL).

    Levels are addressed by index so no lookup ever depends on float equality.
    Stepping by N dB moves to the nearest ladder level at least N dB further in
    the requested direction, clamping at the ends; the returned ``moved`` flag
    is False only when the level was already at that end.
    """

    def __init__(self, levels: Sequence[int] = HEARING_LEVELS):
        levels = tuple(int(level) for level in levels)
        if not levels:
            raise ValueError("A hearing level scale needs at least one level")
        if any(b <= a for a, b in zip(levels, levels[1:])):
            raise ValueError("Hearing levels must be strictly increasing")
        self.levels = levels

    def __len__(self):
        return len(self.levels)

    @property
    def minimum(self) -> int:
        return self.levels[0]

    @property
    def maximum(self) -> int:
        return self.levels[-1]

    @property
    def max_index(self) -> int:
        return len(self.levels) - 1

    def level(self, index: int) -> int:
        if not 0 <= index < len(self.levels):
            raise IndexError(f"Level index {index} outside scale of {len(self.levels)} levels")
        return self.levels[index]

    def index_of(self, level: int) -> int:
        try:
            return self.levels.index(level)
        except ValueError:
            raise ValueError(f"{level} dB HL is not on the hearing level scale") from None

    def raise_by(self, index: int, amount: int) -> Tuple[int, bool]:
        """Step up by at least ``amount`` dB. Returns (new_index, moved)."""
        target = self.levels[index] + amount
        for i in range(index + 1, len(self.levels)):
            if self.levels[i] >= target:
                return i, True
        return self.max_index, index != self.max_index

    def lower_by(self, index: int, amount: int) -> Tuple[int, bool]:
        """Step down by at least ``amount`` dB. Returns (new_index, moved)."""
        target = self.levels[index] - amount
        for i in range(index - 1, -1, -1):
            if self.levels[i] <= target:
                return i, True
        return 0, index != 0

    def is_maximum(self, index: int) -> bool:
        return index == self.max_index

    def is_minimum(self, index: int) -> bool:
        return index == 0


DEFAULT_SCALE = HearingLevelScale()
