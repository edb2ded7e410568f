"""
Інвентар: тут лише призначення обладнання користувачу (IT staff).
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from servicedesk.core.errors import NotFound, ValidationFailed
from servicedesk.db.models import Asset, User
from servicedesk.db.session import commit_or_raise
from servicedesk.schemas.assets import AssetOut
from servicedesk.services import cache as view_cache
from servicedesk.services.session import DeskSession

log = logging.getLogger(__name__)


async def _load_assets(db: AsyncSession) -> list[dict]:
    rows = (await db.execute(
        select(Asset).order_by(Asset.created_at.desc(), Asset.id.desc())
    )).unique().scalars().all()
    return [AssetOut.model_validate(a).model_dump(mode="json") for a in rows]


async def list_assets(db: AsyncSession, session: DeskSession) -> list[AssetOut]:
    session.require_it_staff()
    rows = await view_cache.cached(view_cache.get_cache(), view_cache.ASSETS, lambda: _load_assets(db))
    return [AssetOut.model_validate(r) for r in rows]


async def assign_asset(
    db: AsyncSession,
    session: DeskSession,
    asset_id: int,
    user_id: Optional[int],
) -> AssetOut:
    session.require_it_staff()

    asset = await db.get(Asset, asset_id)
    if asset is None:
        raise NotFound("Asset not found")

    if user_id is not None:
        u = await db.get(User, user_id)
        if u is None or not u.is_active:
            raise ValidationFailed(f"User {user_id} does not exist")

    previous = asset.assignee_id
    asset.assignee_id = user_id
    await commit_or_raise(db)
    await view_cache.get_cache().invalidate(view_cache.ASSETS)

    asset = (await db.execute(
        select(Asset).where(Asset.id == asset_id).execution_options(populate_existing=True)
    )).unique().scalar_one()
    log.info("asset_assigned", extra={"asset_id": asset_id, "from": previous, "to": user_id})
    return AssetOut.model_validate(asset)
