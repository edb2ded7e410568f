from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from servicedesk.db.models import AssetStatus, AssetType
from servicedesk.schemas.common import ProfileBrief


class AssetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    asset_tag: str
    name: str
    type: AssetType
    status: AssetStatus
    location: str | None = None
    assignee_id: int | None = None
    assignee: ProfileBrief | None = None


class AssetAssignIn(BaseModel):
    # null → зняти призначення
    user_id: int | None = None
