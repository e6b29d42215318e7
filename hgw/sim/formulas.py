"""Hacking formulas -- durations, hack yield, growth and security deltas.

All functions are pure and operate on plain numbers so that both the
simulation engine and the tests can call them directly.  Times are in
milliseconds.
"""
import math

from hgw.sim import constants as C


# ---------------------------------------------------------------------------
# Durations
# ---------------------------------------------------------------------------


def hack_time(required_level: int, security: float, hacking_level: int) -> float:
    """Milliseconds for one hack against a server at *security*."""
    difficulty_mult = required_level * security
    skill_factor = C.HACK_DIFFICULTY_FACTOR * difficulty_mult + C.HACK_BASE_DIFFICULTY
    skill_factor /= hacking_level + C.HACK_BASE_SKILL
    return C.HACK_TIME_MULTIPLIER * skill_factor * 1000


def grow_time(required_level: int, security: float, hacking_level: int) -> float:
    return C.GROW_TIME_MULTIPLIER * hack_time(required_level, security, hacking_level)


def weaken_time(required_level: int, security: float, hacking_level: int) -> float:
    return C.WEAKEN_TIME_MULTIPLIER * hack_time(required_level, security, hacking_level)


# ---------------------------------------------------------------------------
# Hack
# ---------------------------------------------------------------------------


def hack_percent(required_level: int, security: float, hacking_level: int) -> float:
    """Fraction of the available money stolen by a single hack thread."""
    if hacking_level < required_level:
        return 0.0
    difficulty_mult = (C.MAX_SECURITY - security) / C.MAX_SECURITY
    skill_mult = (hacking_level - (required_level - 1)) / hacking_level
    percent = difficulty_mult * skill_mult / C.HACK_BALANCE_FACTOR
    return min(1.0, max(0.0, percent))


def hack_threads(money: float, money_available: float, percent: float) -> float:
    """Threads needed to steal *money*; ``inf`` when nothing can be stolen."""
    if money <= 0:
        return 0.0
    if money_available <= 0 or percent <= 0:
        return math.inf
    return money / (money_available * percent)


def hack_security(threads: int) -> float:
    return C.SERVER_FORTIFY_AMOUNT * threads


# ---------------------------------------------------------------------------
# Grow
# ---------------------------------------------------------------------------


def _growth_rate(security: float) -> float:
    rate = 1 + (C.SERVER_BASE_GROWTH_RATE - 1) / security
    return min(rate, C.SERVER_MAX_GROWTH_RATE)


def grow_multiplier(threads: int, security: float, server_growth: float) -> float:
    """Money multiplier produced by *threads* grow threads."""
    if threads <= 0:
        return 1.0
    exponent = (server_growth / 100) * threads
    return _growth_rate(security) ** exponent


def grown_money(
    money: float, max_money: float, threads: int, security: float, server_growth: float
) -> float:
    """Money after a grow.  Each thread first adds $1 so bankrupt servers recover."""
    money = (money + threads) * grow_multiplier(threads, security, server_growth)
    return min(money, max_money)


def grow_threads(
    money: float, target_money: float, max_money: float, security: float, server_growth: float
) -> int:
    """Smallest thread count that grows *money* to at least *target_money*."""
    target_money = min(target_money, max_money)
    if money >= target_money:
        return 0

    def enough(t: int) -> bool:
        return grown_money(money, max_money, t, security, server_growth) >= target_money

    # Double until enough, then binary search the boundary.
    high = 1
    while not enough(high):
        high *= 2
    low = high // 2
    while low + 1 < high:
        mid = (low + high) // 2
        if enough(mid):
            high = mid
        else:
            low = mid
    return high


def grow_security(threads: int) -> float:
    return C.SERVER_GROW_FORTIFY_AMOUNT * threads


# ---------------------------------------------------------------------------
# Weaken
# ---------------------------------------------------------------------------


def weaken_amount(threads: int) -> float:
    return C.SERVER_WEAKEN_AMOUNT * threads


def weaken_threads(security: float, min_security: float) -> int:
    """Threads needed to bring *security* down to *min_security*."""
    excess = security - min_security
    if excess <= 0:
        return 0
    return math.ceil(round(excess / C.SERVER_WEAKEN_AMOUNT, 6))
