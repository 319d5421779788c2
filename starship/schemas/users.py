from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from starship.models.user import UserRole


class UserCreate(BaseModel):
    username: Annotated[str, Field(min_length=1, max_length=64, examples=["hulu"])]
    display_name: Annotated[str, Field(min_length=1, max_length=128, examples=["葫芦"])]
    role: UserRole
    parent_id: Optional[int] = Field(
        default=None,
        description="Required for CHILD users, forbidden for PARENT users.",
    )
    ship_name: Optional[str] = Field(default=None, min_length=1, max_length=50)

    @model_validator(mode="after")
    def check_parent_link(self) -> "UserCreate":
        if self.role == UserRole.CHILD and self.parent_id is None:
            raise ValueError("CHILD users need a parent_id")
        if self.role == UserRole.PARENT and self.parent_id is not None:
            raise ValueError("PARENT users cannot have a parent_id")
        return self


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    display_name: str
    role: UserRole
    parent_id: Optional[int] = None
    ledger_frozen: bool
    created_at: datetime
