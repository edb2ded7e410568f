from fastapi import APIRouter, Depends

from servicedesk.api.deps import DBDep, SessionDep, require_it_staff
from servicedesk.schemas.assets import AssetAssignIn, AssetOut
from servicedesk.services import assets as svc

# інвентар: лише IT staff
router = APIRouter(dependencies=[Depends(require_it_staff())])


@router.get("", response_model=list[AssetOut])
async def list_assets(db: DBDep, session: SessionDep):
    return await svc.list_assets(db, session)


@router.put("/{asset_id}/assignee", response_model=AssetOut)
async def assign_asset(asset_id: int, payload: AssetAssignIn, db: DBDep, session: SessionDep):
    return await svc.assign_asset(db, session, asset_id, payload.user_id)
