"""
Points read models: stats windows over the ledger and the leaderboard.
"""
from datetime import datetime, timezone

from starship.models.point_transaction import PointTransactionType
from starship.models.user import UserRole
from starship.services import accounts, ledger, leveling, points

from helpers import WEDNESDAY, unique_name

EARN = PointTransactionType.EARN
SPEND = PointTransactionType.SPEND


def _append(db, user_id, tx_type, delta, now):
    ledger.append(db, user_id, tx_type, delta, description="test", now=now)
    db.commit()


class TestStats:
    def test_month_window_is_a_calendar_month(self, db, family):
        uid = family.child.id
        now = datetime(2026, 3, 31, 12, 0, tzinfo=timezone.utc)
        _append(db, uid, EARN, 7, datetime(2026, 2, 27, 12, 0, tzinfo=timezone.utc))
        # Inside Feb 28 12:00 .. Mar 31 12:00, but more than 30 days back.
        _append(db, uid, EARN, 11, datetime(2026, 2, 28, 18, 0, tzinfo=timezone.utc))
        _append(db, uid, EARN, 5, now)

        stats = points.get_stats(db, uid, "month", now)
        assert stats.since == datetime(2026, 2, 28, 12, 0, tzinfo=timezone.utc)
        assert stats.total_earned == 16
        assert stats.transaction_count == 2
        assert stats.lifetime_earned == 23

    def test_naive_now_matches_utc(self, db, family):
        uid = family.child.id
        _append(db, uid, EARN, 20, WEDNESDAY)
        _append(db, uid, SPEND, -5, WEDNESDAY)

        aware = points.get_stats(db, uid, "today", WEDNESDAY)
        naive = points.get_stats(db, uid, "today", WEDNESDAY.replace(tzinfo=None))
        assert aware == naive
        assert (naive.total_earned, naive.total_spent, naive.net_gain) == (20, 5, 15)


class TestLeaderboard:
    def _child(self, db, parent_id, name):
        return accounts.create_user(
            db, unique_name("kid"), name, UserRole.CHILD, parent_id=parent_id
        )

    def test_ties_on_level_broken_by_total_exp(self, db, family):
        second = self._child(db, family.parent.id, "二娃")
        leveling.apply_exp(db, family.child.id, 40)
        leveling.apply_exp(db, second.id, 60)
        db.commit()

        board = points.get_leaderboard(db, "level", parent_id=family.parent.id)
        assert [(e.rank, e.user_id) for e in board] == [(1, second.id), (2, family.child.id)]
        assert all(e.level == 1 for e in board)

    def test_equal_scores_keep_creation_order(self, db, family):
        second = self._child(db, family.parent.id, "二娃")
        board = points.get_leaderboard(db, "coins", parent_id=family.parent.id)
        assert [e.user_id for e in board] == [family.child.id, second.id]
        assert [e.balance for e in board] == [0, 0]

    def test_other_households_excluded(self, db, family):
        other = accounts.create_user(db, unique_name("dad"), "Dad", UserRole.PARENT)
        self._child(db, other.id, "邻居")
        board = points.get_leaderboard(db, "level", parent_id=family.parent.id)
        assert [e.user_id for e in board] == [family.child.id]
