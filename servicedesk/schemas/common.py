# servicedesk/schemas/common.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ProfileBrief(BaseModel):
    """Проєкція профілю для requester/assignee/author."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    full_name: str | None = None
    avatar_url: str | None = None
    department: str | None = None
