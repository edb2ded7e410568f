# servicedesk/api/routes/auth.py
from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import Response

from servicedesk.api.deps import DBDep, SessionDep, get_current_user
from servicedesk.core.logging import log_extra
from servicedesk.db.models import User
from servicedesk.schemas.auth import LoginIn, RegisterIn, TokenOut
from servicedesk.schemas.users import ProfileOut
from servicedesk.services.auth import authenticate, make_token_for_user, register_user

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=TokenOut)
async def login(payload: LoginIn, request: Request, db: DBDep):
    user = await authenticate(db, email=payload.username, password=payload.password)
    token = make_token_for_user(user, remember_me=bool(payload.remember_me))
    logger.info("signed_in", extra={**log_extra(request), "user_id": user.id})
    return {
        "access_token": token,
        "token_type": "bearer",
        "user": ProfileOut.model_validate(user),
    }


@router.post("/register", response_model=TokenOut, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterIn, request: Request, db: DBDep):
    user = await register_user(
        db,
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        department=payload.department,
        job_title=payload.job_title,
    )
    logger.info("registered", extra={**log_extra(request), "user_id": user.id})
    return {
        "access_token": make_token_for_user(user),
        "token_type": "bearer",
        "user": ProfileOut.model_validate(user),
    }


@router.get("/me", response_model=ProfileOut)
async def me(current: Annotated[User, Depends(get_current_user)]):
    return ProfileOut.model_validate(current)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(session: SessionDep, request: Request):
    # токен stateless: клієнт його викидає; cookie режиму лишається на пристрої
    logger.info("signed_out", extra={**log_extra(request), "user_id": session.principal.id})
    session.close()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
