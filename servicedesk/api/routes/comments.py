from fastapi import APIRouter, status

from servicedesk.api.deps import DBDep, SessionDep
from servicedesk.schemas.comments import CommentCreate, CommentOut
from servicedesk.services import tickets as svc

router = APIRouter()


@router.post("/{ticket_id}/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
async def add_comment(ticket_id: int, payload: CommentCreate, db: DBDep, session: SessionDep):
    return await svc.add_comment(db, session, ticket_id, payload.content, payload.is_internal)


@router.get("/{ticket_id}/comments", response_model=list[CommentOut])
async def list_comments(ticket_id: int, db: DBDep, session: SessionDep):
    return await svc.list_comments(db, session, ticket_id)
