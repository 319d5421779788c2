"""
Reward calculator: coins and experience paid for one completion.

Every 7 consecutive completions add a flat +10 % of the base coins (integer
floor), capped at +50 % from a 35-completion streak onwards. Experience is
paid at face value. Difficulty is already reflected in the task's own
star_coins / exp_reward, so it is not applied again here.
"""
from __future__ import annotations

from dataclasses import dataclass

STREAK_STEP = 7
STREAK_BONUS_PERCENT = 10
STREAK_BONUS_CAP_PERCENT = 50


@dataclass(frozen=True)
class Payout:
    coins: int
    exp: int
    bonus_percent: int
    bonus_coins: int


def streak_bonus_percent(streak_count: int) -> int:
    steps = max(streak_count, 0) // STREAK_STEP
    return min(steps * STREAK_BONUS_PERCENT, STREAK_BONUS_CAP_PERCENT)


def reward(task, streak_count: int) -> Payout:
    base_coins = task.star_coins
    percent = streak_bonus_percent(streak_count)
    bonus = base_coins * percent // 100
    return Payout(
        coins=base_coins + bonus,
        exp=task.exp_reward,
        bonus_percent=percent,
        bonus_coins=bonus,
    )
