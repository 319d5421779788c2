"""
Accounts: household users and the two-role checks every operation relies on.

The caller is already authenticated; these helpers only enforce the
PARENT / CHILD distinction and the child → parent link.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from starship.core.errors import (
    DuplicateUsernameError,
    NotChildOfParentError,
    NotFoundError,
    RoleMismatchError,
)
from starship.models.user import User, UserRole
from starship.services.leveling import new_level_record


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("user", user_id)
    return user


def require_role(user: User, role: UserRole) -> User:
    if user.role != role:
        raise RoleMismatchError(user.id, role.value, UserRole(user.role).value)
    return user


def get_parent(db: Session, user_id: int) -> User:
    return require_role(get_user(db, user_id), UserRole.PARENT)


def get_child(db: Session, user_id: int) -> User:
    return require_role(get_user(db, user_id), UserRole.CHILD)


def require_child_of(child: User, parent: User) -> None:
    if child.parent_id != parent.id:
        raise NotChildOfParentError(child.id, parent.id)


def owner_id_for(user: User) -> int:
    """Whose definitions (tasks, rewards) this user sees: a child sees its parent's."""
    return user.parent_id if user.is_child else user.id


def create_user(
    db: Session,
    username: str,
    display_name: str,
    role: UserRole,
    parent_id: Optional[int] = None,
    ship_name: Optional[str] = None,
) -> User:
    """Create a user together with its level-1 LevelRecord."""
    if role == UserRole.CHILD:
        if parent_id is None:
            raise RoleMismatchError(0, UserRole.PARENT.value, "missing")
        get_parent(db, parent_id)
    else:
        parent_id = None

    if db.query(User.id).filter(User.username == username).first() is not None:
        raise DuplicateUsernameError(username)

    user = User(
        username=username,
        display_name=display_name,
        role=role,
        parent_id=parent_id,
        ledger_frozen=False,
    )
    db.add(user)
    try:
        db.flush()
        db.add(new_level_record(user.id, ship_name))
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateUsernameError(username)
    db.refresh(user)
    return user


def list_children(db: Session, parent_id: int) -> list[User]:
    get_parent(db, parent_id)
    return db.query(User).filter(User.parent_id == parent_id).order_by(User.id.asc()).all()
