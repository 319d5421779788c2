from types import SimpleNamespace as NS

from starship.services.payout import reward, streak_bonus_percent


class TestStreakBonus:
    def test_no_bonus_below_seven(self):
        assert streak_bonus_percent(1) == 0
        assert streak_bonus_percent(6) == 0

    def test_ten_percent_per_seven(self):
        assert streak_bonus_percent(7) == 10
        assert streak_bonus_percent(13) == 10
        assert streak_bonus_percent(14) == 20

    def test_capped_at_fifty(self):
        assert streak_bonus_percent(35) == 50
        assert streak_bonus_percent(100) == 50


class TestReward:
    def test_base_payout(self):
        p = reward(NS(star_coins=10, exp_reward=20), 1)
        assert (p.coins, p.exp, p.bonus_percent, p.bonus_coins) == (10, 20, 0, 0)

    def test_seventh_day_bonus(self):
        p = reward(NS(star_coins=10, exp_reward=20), 7)
        assert p.coins == 11
        assert p.bonus_coins == 1
        # experience is never boosted
        assert p.exp == 20

    def test_bonus_is_floored(self):
        assert reward(NS(star_coins=15, exp_reward=0), 7).coins == 16

    def test_zero_coin_task(self):
        assert reward(NS(star_coins=0, exp_reward=5), 40).coins == 0
