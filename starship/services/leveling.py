"""
Leveling engine: experience → level → rank title.

Policy v1: a fixed 100 experience per level. Changing it is a new policy
version, never a silent tweak. Levels and total experience only grow;
punishments act on the coin ledger and never reach this module.
"""
from __future__ import annotations

import bisect
import logging
from typing import Optional

from sqlalchemy.orm import Session

from starship.core.config import settings
from starship.core.errors import NegativeExperienceError, NotFoundError
from starship.models.level_record import LevelRecord

logger = logging.getLogger("starship.leveling")

LEVEL_POLICY_VERSION = 1
EXP_PER_LEVEL = 100

# (minimum level, title), ascending and starting at 1.
RANK_TITLES: tuple[tuple[int, str], ...] = (
    (1, "见习宇航员"),
    (5, "初级宇航员"),
    (10, "中级宇航员"),
    (15, "高级宇航员"),
    (20, "星际舰长"),
    (30, "银河英雄"),
    (40, "宇宙传奇"),
    (50, "太空大师"),
)
_RANK_THRESHOLDS = [threshold for threshold, _ in RANK_TITLES]


def title_for_level(level: int) -> str:
    idx = bisect.bisect_right(_RANK_THRESHOLDS, max(level, 1)) - 1
    return RANK_TITLES[idx][1]


def new_level_record(user_id: int, ship_name: Optional[str] = None) -> LevelRecord:
    return LevelRecord(
        user_id=user_id,
        level=1,
        title=title_for_level(1),
        exp=0,
        total_exp=0,
        ship_name=ship_name or settings.DEFAULT_SHIP_NAME,
    )


def get_level(db: Session, user_id: int) -> LevelRecord:
    record = db.query(LevelRecord).filter(LevelRecord.user_id == user_id).first()
    if record is None:
        raise NotFoundError("level_record", user_id)
    return record


def apply_exp(db: Session, user_id: int, delta: int) -> LevelRecord:
    """Add experience and recompute level/title. Flushes, does not commit."""
    if delta < 0:
        raise NegativeExperienceError(user_id, delta)

    record = get_level(db, user_id)
    if delta == 0:
        return record

    gained = record.exp + delta
    old_level = record.level
    record.total_exp = record.total_exp + delta
    record.level = old_level + gained // EXP_PER_LEVEL
    record.exp = gained % EXP_PER_LEVEL
    record.title = title_for_level(record.level)
    db.flush()

    if record.level > old_level:
        logger.info(
            "level up",
            extra={"user_id": user_id, "level": record.level},
        )
    return record


def progress_percent(record: LevelRecord) -> float:
    return round(record.exp * 100 / EXP_PER_LEVEL, 2)
