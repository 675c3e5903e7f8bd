"""Pydantic schemas for Users."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from clubflow.models.user import Role


class UserCreate(BaseModel):
    student_id: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None


class RoleChange(BaseModel):
    role: Role


class UserOut(BaseModel):
    user_id: str
    student_id: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    role: Role
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
