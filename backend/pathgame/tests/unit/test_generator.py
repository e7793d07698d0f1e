import datetime as dt

import pytest

from pathgame.logic.enums import GridSize
from pathgame.logic.generator import MAX_CELL_VALUE, MIN_CELL_VALUE, generate_for_key, generate_grid
from pathgame.tests.helpers.grids import REFERENCE_DATE, REFERENCE_SMALL_ROWS, key


class TestGenerateGrid:
    def test_reference_small_grid(self):
        assert generate_grid(REFERENCE_DATE, GridSize.SMALL).cells == REFERENCE_SMALL_ROWS

    def test_reference_large_grid(self):
        grid = generate_grid(REFERENCE_DATE, GridSize.LARGE)
        assert grid.cells == (
            (1, 5, 3, 3, 5, 3, 2),
            (5, 5, 1, 2, 5, 2, 3),
            (2, 2, 4, 3, 5, 2, 1),
            (3, 5, 2, 2, 1, 1, 5),
            (2, 3, 1, 3, 1, 3, 2),
            (3, 4, 1, 4, 2, 3, 2),
            (3, 3, 1, 1, 2, 4, 4),
        )

    def test_accepts_plain_int_size(self):
        assert generate_grid(REFERENCE_DATE, 5) == generate_grid(REFERENCE_DATE, GridSize.SMALL)

    @pytest.mark.parametrize("size", [GridSize.SMALL, GridSize.LARGE])
    def test_deterministic(self, size):
        date = dt.date(2025, 6, 15)
        assert generate_grid(date, size) == generate_grid(date, size)

    @pytest.mark.parametrize("size", [GridSize.SMALL, GridSize.LARGE])
    def test_shape_and_value_range(self, size):
        start = dt.date(2025, 1, 1)
        for offset in range(60):
            grid = generate_grid(start + dt.timedelta(days=offset), size)
            assert grid.size == size.size
            for row in grid.cells:
                assert all(MIN_CELL_VALUE <= v <= MAX_CELL_VALUE for v in row)

    def test_sizes_differ_for_same_date(self):
        small = generate_grid(REFERENCE_DATE, GridSize.SMALL)
        large = generate_grid(REFERENCE_DATE, GridSize.LARGE)
        assert small.cells[0] != large.cells[0][:5]

    def test_consecutive_days_differ(self):
        today = generate_grid(dt.date(2025, 6, 15), GridSize.SMALL)
        tomorrow = generate_grid(dt.date(2025, 6, 16), GridSize.SMALL)
        assert today != tomorrow

    @pytest.mark.parametrize("size", [0, 3, 6, 9])
    def test_unsupported_size_rejected(self, size):
        with pytest.raises(ValueError, match="Unsupported grid size"):
            generate_grid(REFERENCE_DATE, size)

    def test_generate_for_key(self):
        assert generate_for_key(key()) == generate_grid(REFERENCE_DATE, GridSize.SMALL)
