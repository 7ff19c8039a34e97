"""Tests for the Sierpinski curve generator.

Validates the base diamond, the length recurrence, path continuity and
the cache discipline (monotonic growth, read-only entries, copies out).
"""

from __future__ import annotations

import numpy as np
import pytest

from sierpinski_pyramid.geometry.curve import (
    MAX_LEVEL,
    CapacityError,
    CurveGenerator,
    GenerationError,
    curve_length,
    entry_index,
    side_length,
)

LEVEL_1 = [
    (-2, 0),
    (-2, -1), (-3, -2), (-2, -3), (-1, -2),
    (0, -2),
    (1, -2), (2, -3), (3, -2), (2, -1),
    (2, 0),
    (2, 1), (3, 2), (2, 3), (1, 2),
    (0, 2),
    (-1, 2), (-2, 3), (-3, 2), (-2, 1),
]


@pytest.fixture()
def curves() -> CurveGenerator:
    return CurveGenerator()


# ---------------------------------------------------------------------------
# Closed-form helpers
# ---------------------------------------------------------------------------


class TestFormulas:
    @pytest.mark.parametrize("n", range(1, 12))
    def test_length_recurrence(self, n: int) -> None:
        assert curve_length(n) == 4 * (curve_length(n - 1) + 1)

    def test_small_lengths(self) -> None:
        assert [curve_length(n) for n in range(-2, 3)] == [0, 1, 4, 20, 84]

    def test_entry_index(self) -> None:
        assert entry_index(4) == 3
        assert entry_index(20) == 13

    def test_side_length(self) -> None:
        assert side_length(0) == 1
        assert side_length(7) == 128
        assert side_length(-1) == 0

    def test_max_level_length_fits_int64(self) -> None:
        assert curve_length(MAX_LEVEL) <= np.iinfo(np.int64).max
        assert curve_length(MAX_LEVEL + 1) > np.iinfo(np.int64).max


# ---------------------------------------------------------------------------
# Curve shape
# ---------------------------------------------------------------------------


class TestCurveShape:
    def test_level_zero_is_diamond(self, curves: CurveGenerator) -> None:
        np.testing.assert_array_equal(
            curves.get_curve(0), [(-1, 0), (0, -1), (1, 0), (0, 1)]
        )

    def test_level_one_points(self, curves: CurveGenerator) -> None:
        np.testing.assert_array_equal(curves.get_curve(1), LEVEL_1)

    @pytest.mark.parametrize("n", range(0, 9))
    def test_length_matches_closed_form(self, curves: CurveGenerator, n: int) -> None:
        assert len(curves.get_curve(n)) == curve_length(n)

    @pytest.mark.parametrize("n", range(0, 6))
    def test_closed_path_of_unit_steps(self, curves: CurveGenerator, n: int) -> None:
        """Neighbouring points (wrapping around) are one lattice move apart."""
        c = curves.get_curve(n)
        steps = np.abs(np.roll(c, -1, axis=0) - c)
        assert steps.max() == 1
        assert (steps.sum(axis=1) > 0).all()

    @pytest.mark.parametrize("n", range(0, 6))
    def test_no_repeated_vertices(self, curves: CurveGenerator, n: int) -> None:
        c = curves.get_curve(n)
        assert len(np.unique(c, axis=0)) == len(c)

    @pytest.mark.parametrize("n", range(0, 6))
    def test_quarter_turn_symmetric(self, curves: CurveGenerator, n: int) -> None:
        c = curves.get_curve(n)
        as_set = {tuple(p) for p in c.tolist()}
        assert {(-y, x) for x, y in as_set} == as_set

    def test_dtype_is_int64(self, curves: CurveGenerator) -> None:
        assert curves.get_curve(3).dtype == np.int64

    def test_level_minus_one_is_origin(self, curves: CurveGenerator) -> None:
        np.testing.assert_array_equal(curves.get_curve(-1), [(0, 0)])

    @pytest.mark.parametrize("n", [-2, -5])
    def test_lower_levels_empty(self, curves: CurveGenerator, n: int) -> None:
        assert curves.get_curve(n).shape == (0, 2)
        assert curves.highest_level == -1


# ---------------------------------------------------------------------------
# Cache discipline
# ---------------------------------------------------------------------------


class TestCurveCache:
    def test_empty_cache(self, curves: CurveGenerator) -> None:
        assert curves.highest_level == -1

    def test_cache_grows_to_requested_level(self, curves: CurveGenerator) -> None:
        curves.get_curve(3)
        assert curves.highest_level == 3
        curves.get_curve(1)
        assert curves.highest_level == 3

    def test_existing_entries_not_rebuilt(self, curves: CurveGenerator) -> None:
        curves.ensure(2)
        level_2 = curves.cached(2)
        curves.ensure(5)
        assert curves.cached(2) is level_2

    def test_returned_curve_is_a_copy(self, curves: CurveGenerator) -> None:
        c = curves.get_curve(1)
        c[0] = (99, 99)
        np.testing.assert_array_equal(curves.get_curve(1), LEVEL_1)

    def test_cached_array_read_only(self, curves: CurveGenerator) -> None:
        curves.ensure(1)
        with pytest.raises(ValueError):
            curves.cached(1)[0, 0] = 7

    def test_repeated_calls_identical(self, curves: CurveGenerator) -> None:
        np.testing.assert_array_equal(curves.get_curve(4), curves.get_curve(4))

    def test_independent_generators_agree(self) -> None:
        np.testing.assert_array_equal(
            CurveGenerator().get_curve(3), CurveGenerator().get_curve(3)
        )


# ---------------------------------------------------------------------------
# Capacity
# ---------------------------------------------------------------------------


class TestCapacity:
    def test_level_above_max_raises(self, curves: CurveGenerator) -> None:
        with pytest.raises(CapacityError, match="maximum supported level"):
            curves.get_curve(MAX_LEVEL + 1)

    def test_capacity_error_is_generation_error(self, curves: CurveGenerator) -> None:
        with pytest.raises(GenerationError):
            curves.ensure(MAX_LEVEL + 5)

    def test_failed_request_leaves_cache_untouched(self, curves: CurveGenerator) -> None:
        curves.ensure(2)
        with pytest.raises(CapacityError):
            curves.ensure(MAX_LEVEL + 1)
        assert curves.highest_level == 2
