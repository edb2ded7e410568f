# servicedesk/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from servicedesk.api.routes import (
    health,
    auth,
    session,
    users,
    tickets,
    comments,
    assets,
)

from servicedesk.core.config import settings
from servicedesk.core.errors import ServiceDeskError
from servicedesk.core.logging import setup_logging, RequestIdMiddleware, log_extra

setup_logging(settings.log_level, json_output=settings.env == "prod")
logger = logging.getLogger("servicedesk")

app = FastAPI(
    title="ServiceDesk",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url=None,
    openapi_url="/api/openapi.json",
)

# ==== Middlewares ====
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestIdMiddleware)


# ==== Помилки ядра → HTTP ====
@app.exception_handler(ServiceDeskError)
async def servicedesk_error_handler(request: Request, exc: ServiceDeskError):
    if exc.status_code >= 500:
        logger.warning("request_failed", extra={**log_extra(request), "code": exc.code})
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
    )


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("store_failure", extra=log_extra(request))
    return JSONResponse(
        status_code=503,
        content={"detail": "Storage is unavailable, try again later", "code": "remote_failure"},
    )


# ==== API під /api ====
app.include_router(health.router,   prefix="/api",          tags=["health"])
app.include_router(auth.router,     prefix="/api/auth",     tags=["auth"])
app.include_router(session.router,  prefix="/api/session",  tags=["session"])
app.include_router(users.router,    prefix="/api/users",    tags=["users"])
app.include_router(tickets.router,  prefix="/api/tickets",  tags=["tickets"])
app.include_router(comments.router, prefix="/api/tickets",  tags=["comments"])
app.include_router(assets.router,   prefix="/api/assets",   tags=["assets"])
