"""Pydantic schemas for Clubs."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ClubCreate(BaseModel):
    club_name: str
    club_code: str
    description: Optional[str] = None
    email: Optional[str] = None


class ClubOut(BaseModel):
    club_id: str
    club_name: str
    club_code: str
    description: Optional[str] = None
    email: Optional[str] = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class MembershipOut(BaseModel):
    membership_id: str
    club_id: str
    user_id: str
    member_role: str
    is_active: bool
    joined_at: datetime

    model_config = {"from_attributes": True}


class MemberOut(BaseModel):
    user_id: str
    first_name: str
    last_name: str
    email: str
    member_role: str
    joined_at: datetime


class UserClubOut(BaseModel):
    club_id: str
    club_name: str
    club_code: str
    member_role: str
    joined_at: datetime


class ModeratorAssign(BaseModel):
    user_id: str


class ModeratorAssignmentOut(BaseModel):
    club_id: str
    user_id: str
    assigned_at: datetime

    model_config = {"from_attributes": True}


class ModeratorOut(BaseModel):
    user_id: str
    first_name: str
    last_name: str
    email: str
    assigned_at: datetime
