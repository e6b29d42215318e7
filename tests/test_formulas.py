"""Tests for the hacking formulas."""
import math

from hgw.sim import constants as C
from hgw.sim import formulas as F


def test_durations_scale_with_hack_time():
    h = F.hack_time(10, 5, 100)
    assert F.grow_time(10, 5, 100) == C.GROW_TIME_MULTIPLIER * h
    assert F.weaken_time(10, 5, 100) == C.WEAKEN_TIME_MULTIPLIER * h
    assert F.weaken_time(10, 5, 100) >= F.grow_time(10, 5, 100) >= h


def test_higher_security_is_slower():
    assert F.hack_time(10, 20, 100) > F.hack_time(10, 5, 100)


def test_higher_level_is_faster():
    assert F.hack_time(10, 5, 200) < F.hack_time(10, 5, 100)


def test_hack_percent_zero_below_required_level():
    assert F.hack_percent(50, 5, 10) == 0.0
    assert F.hack_percent(50, 5, 50) > 0.0


def test_hack_threads():
    assert F.hack_threads(0, 1000, 0.01) == 0.0
    assert math.isinf(F.hack_threads(100, 0, 0.01))
    assert math.isinf(F.hack_threads(100, 1000, 0.0))
    assert F.hack_threads(100, 1000, 0.01) == 10.0


def test_security_deltas():
    assert F.hack_security(10) == 10 * C.SERVER_FORTIFY_AMOUNT
    assert F.grow_security(10) == 10 * C.SERVER_GROW_FORTIFY_AMOUNT
    assert F.weaken_amount(10) == 10 * C.SERVER_WEAKEN_AMOUNT


def test_grown_money_capped_at_max():
    assert F.grown_money(900, 1000, 10_000, 1, 100) == 1000


def test_grown_money_recovers_from_zero():
    assert F.grown_money(0, 1000, 5, 1, 100) > 0


def test_grow_threads_is_minimal():
    money, max_money, security, growth = 400_000, 1_000_000, 5, 20
    t = F.grow_threads(money, max_money, max_money, security, growth)
    assert t > 0
    assert F.grown_money(money, max_money, t, security, growth) >= max_money
    assert F.grown_money(money, max_money, t - 1, security, growth) < max_money


def test_grow_threads_zero_when_full():
    assert F.grow_threads(1000, 1000, 1000, 1, 10) == 0


def test_weaken_threads():
    assert F.weaken_threads(5, 5) == 0
    assert F.weaken_threads(5.3, 5) == 6
    # 0.5 / 0.05 must not round up to 11 through float error.
    assert F.weaken_threads(5.5, 5) == 10
