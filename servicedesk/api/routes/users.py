# servicedesk/api/routes/users.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from servicedesk.api.deps import DBDep, SessionDep, require_admin
from servicedesk.db.models import RoleEnum
from servicedesk.schemas.users import ProfileOut, ProfileUpdate, RoleGrantIn, UserWithRoles
from servicedesk.services import users as svc

router = APIRouter()


# ---------- SELF ----------
@router.patch("/me", response_model=ProfileOut)
async def update_me(payload: ProfileUpdate, db: DBDep, session: SessionDep):
    return await svc.update_profile(db, session, session.principal.id, payload)


# ---------- ADMIN ----------
@router.get("", response_model=list[UserWithRoles], dependencies=[Depends(require_admin())])
async def list_users(db: DBDep, session: SessionDep):
    return await svc.list_users_with_roles(db, session)


@router.patch("/{user_id}", response_model=ProfileOut)
async def update_user(user_id: int, payload: ProfileUpdate, db: DBDep, session: SessionDep):
    return await svc.update_profile(db, session, user_id, payload)


@router.post("/{user_id}/roles", status_code=201)
async def add_role(user_id: int, payload: RoleGrantIn, db: DBDep, session: SessionDep):
    roles = await svc.add_role(db, session, user_id, payload.role)
    return {"user_id": user_id, "roles": roles}


@router.delete("/{user_id}/roles/{role}")
async def remove_role(user_id: int, role: RoleEnum, db: DBDep, session: SessionDep):
    roles = await svc.remove_role(db, session, user_id, role)
    return {"user_id": user_id, "roles": roles}
