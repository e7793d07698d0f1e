"""
Deterministic random stream for daily puzzle generation.

Every client derives the same grid from the same (date, grid size) pair, so
this module reproduces the integer arithmetic the apps share exactly:

1. Hash the unpadded date string "Y-M-D" with the 31-multiplier string hash,
   truncating to a signed 32-bit integer after every character.
2. Offset the absolute hash by grid_size.n * 1000 to separate the 5x5 and
   7x7 streams.
3. Draw values from a 31-bit linear congruential generator.

Changing any constant here changes every published puzzle; the reference
vectors in test_rng.py guard against that.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import datetime as dt

    from pathgame.logic.enums import GridSize

LCG_MULTIPLIER = 1103515245
LCG_INCREMENT = 12345
LCG_MASK = 0x7FFFFFFF
SIZE_SEED_STRIDE = 1000

_INT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def _to_int32(value: int) -> int:
    value &= _INT32_MASK
    return value - (1 << 32) if value & _INT32_SIGN else value


def date_string(date: dt.date) -> str:
    """Unpadded "Y-M-D" form used as hash input (2024-03-05 -> "2024-3-5")."""
    return f"{date.year}-{date.month}-{date.day}"


def date_seed(date: dt.date) -> int:
    """Non-negative seed derived from the calendar date."""
    h = 0
    for ch in date_string(date):
        h = _to_int32((h << 5) - h + ord(ch))
    return abs(h)


def puzzle_seed(date: dt.date, grid_size: GridSize) -> int:
    """Seed for one (date, grid size) puzzle."""
    return date_seed(date) + grid_size.n * SIZE_SEED_STRIDE


class SeededRandom:
    """31-bit linear congruential generator shared by all puzzle clients."""

    def __init__(self, seed: int) -> None:
        if seed < 0:
            raise ValueError(f"Seed must be non-negative, got {seed}")
        self._state = seed

    @property
    def state(self) -> int:
        return self._state

    def next_float(self) -> float:
        """Advance and return a float in [0, 1]."""
        self._state = (self._state * LCG_MULTIPLIER + LCG_INCREMENT) & LCG_MASK
        return self._state / LCG_MASK

    def next_int(self, low: int, high: int) -> int:
        """Advance and return an integer in [low, high].

        next_float() reaches exactly 1.0 when the state equals the mask;
        that single state is clamped to high instead of overshooting.
        """
        if high < low:
            raise ValueError(f"Empty range [{low}, {high}]")
        return min(int(self.next_float() * (high - low + 1)) + low, high)

    @classmethod
    def for_puzzle(cls, date: dt.date, grid_size: GridSize) -> SeededRandom:
        return cls(puzzle_seed(date, grid_size))
