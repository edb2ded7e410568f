# servicedesk/schemas/users.py
from __future__ import annotations
from pydantic import BaseModel, Field, ConfigDict

from servicedesk.db.models import RoleEnum


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    full_name: str | None = None
    department: str | None = None
    job_title: str | None = None
    phone: str | None = None
    avatar_url: str | None = None
    is_active: bool | None = None


class UserWithRoles(ProfileOut):
    roles: list[RoleEnum] = Field(default_factory=list)


class RoleGrantIn(BaseModel):
    role: RoleEnum


class ProfileUpdate(BaseModel):
    full_name: str | None = Field(default=None, min_length=1, max_length=255)
    department: str | None = Field(default=None, max_length=128)
    job_title: str | None = Field(default=None, max_length=128)
    phone: str | None = Field(default=None, max_length=32)
    avatar_url: str | None = Field(default=None, max_length=512)
