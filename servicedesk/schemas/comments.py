from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field

from servicedesk.schemas.common import ProfileBrief


class CommentCreate(BaseModel):
    content: str = Field(default="", max_length=10_000)
    is_internal: bool = False


class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    author_id: int
    content: str
    is_internal: bool
    created_at: datetime
    author: ProfileBrief | None = None
