import pytest

from starship.core.errors import NegativeExperienceError
from starship.services import leveling


class TestTitles:
    @pytest.mark.parametrize(
        "level,title",
        [
            (1, "见习宇航员"),
            (4, "见习宇航员"),
            (5, "初级宇航员"),
            (19, "高级宇航员"),
            (20, "星际舰长"),
            (49, "宇宙传奇"),
            (50, "太空大师"),
            (120, "太空大师"),
        ],
    )
    def test_title_for_level(self, level, title):
        assert leveling.title_for_level(level) == title


class TestApplyExp:
    def test_new_user_starts_at_level_one(self, db, family):
        record = leveling.get_level(db, family.child.id)
        assert (record.level, record.exp, record.total_exp) == (1, 0, 0)
        assert record.ship_name == "探索者号"

    def test_level_up_carries_remainder(self, db, family):
        record = leveling.apply_exp(db, family.child.id, 250)
        db.commit()
        assert record.level == 3
        assert record.exp == 50
        assert record.total_exp == 250
        assert leveling.progress_percent(record) == 50.0

    def test_many_levels_at_once_update_title(self, db, family):
        record = leveling.apply_exp(db, family.child.id, 2000)
        db.commit()
        assert record.level == 21
        assert record.title == "星际舰长"

    def test_negative_rejected(self, db, family):
        with pytest.raises(NegativeExperienceError):
            leveling.apply_exp(db, family.child.id, -10)

    def test_zero_is_noop(self, db, family):
        record = leveling.apply_exp(db, family.child.id, 0)
        assert record.total_exp == 0
