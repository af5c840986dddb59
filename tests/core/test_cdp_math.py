"""Tests for levercdp/core/cdp/math.py: ratio math and fixed-point helpers."""

from __future__ import annotations

import pytest

from levercdp.core.cdp.math import (
    DECIMAL_PRECISION,
    MAX_DECAY_MINUTES,
    MAX_RATIO,
    NICR_PRECISION,
    apply_delta,
    compute_cr,
    compute_nominal_cr,
    dec_mul,
    dec_pow,
    new_coll_and_debt,
)
from levercdp.core.cdp.params import MINUTE_DECAY_FACTOR_DEFAULT

UNIT = DECIMAL_PRECISION


class TestRatios:
    def test_cr_is_price_weighted(self):
        assert compute_cr(10 * UNIT, 2_000 * UNIT, 2_000 * UNIT) == 10 * UNIT
        assert compute_cr(10 * UNIT, 2_210 * UNIT, 2_000 * UNIT) == 10 * UNIT * 2_000 * UNIT // (2_210 * UNIT)

    def test_cr_floors(self):
        # 1 * 1 / 3 -> 0.333.. floors to 333333333333333333
        assert compute_cr(UNIT, 3 * UNIT, UNIT) == 333_333_333_333_333_333

    def test_zero_debt_is_max_ratio(self):
        assert compute_cr(UNIT, 0, UNIT) == MAX_RATIO
        assert compute_cr(0, 0, UNIT) == MAX_RATIO
        assert compute_nominal_cr(UNIT, 0) == MAX_RATIO

    def test_nominal_cr_ignores_price(self):
        assert compute_nominal_cr(5 * UNIT, UNIT) == 5 * NICR_PRECISION
        assert compute_nominal_cr(UNIT, 4 * UNIT) == NICR_PRECISION // 4


class TestDecMul:
    def test_identity(self):
        assert dec_mul(UNIT, UNIT) == UNIT
        assert dec_mul(7 * UNIT, UNIT) == 7 * UNIT

    def test_rounds_half_up(self):
        assert dec_mul(1, UNIT // 2) == 1
        assert dec_mul(1, UNIT // 2 - 1) == 0


class TestDecPow:
    def test_zero_exponent_is_one(self):
        assert dec_pow(123, 0) == UNIT

    def test_small_exponents(self):
        half = UNIT // 2
        assert dec_pow(half, 1) == half
        assert dec_pow(half, 2) == UNIT // 4
        assert dec_pow(half, 3) == UNIT // 8

    def test_decay_factor_has_twelve_hour_half_life(self):
        v = dec_pow(MINUTE_DECAY_FACTOR_DEFAULT, 720)
        assert abs(v - UNIT // 2) < 10**14

    def test_exponent_is_capped(self):
        assert dec_pow(MINUTE_DECAY_FACTOR_DEFAULT, 10**12) == dec_pow(MINUTE_DECAY_FACTOR_DEFAULT, MAX_DECAY_MINUTES)

    def test_negative_exponent_rejected(self):
        with pytest.raises(ValueError):
            dec_pow(UNIT, -1)


def test_apply_delta_and_new_coll_and_debt():
    assert apply_delta(10, 3, True) == 13
    assert apply_delta(10, 3, False) == 7
    assert new_coll_and_debt(10, 20, 3, False, 5, True) == (7, 25)
    assert new_coll_and_debt(10, 20, 0, True, 5, False) == (10, 15)
