from .user import User
from .task import Task
from .completion import TaskCompletion
from .point_transaction import PointTransaction
from .level_record import LevelRecord
from .reward import Reward
from .punishment import PunishmentRule, PunishmentRecord

__all__ = [
    "User",
    "Task",
    "TaskCompletion",
    "PointTransaction",
    "LevelRecord",
    "Reward",
    "PunishmentRule",
    "PunishmentRecord",
]
