# servicedesk/core/security.py
from __future__ import annotations
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from passlib.context import CryptContext
from jose import jwt, JWTError

from servicedesk.core.config import settings

_pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return _pwd_ctx.hash(password)


def verify_password(plain_password: str, password_hash: str) -> tuple[bool, Optional[str]]:
    """
    (ok, new_hash): new_hash не None, коли хеш застарів (інші rounds/схема)
    і його варто перезаписати після успішного входу.
    """
    return _pwd_ctx.verify_and_update(plain_password, password_hash)


def create_access_token(*, subject: str, expires_minutes: Optional[int] = None) -> str:
    # ролі в токен не кладемо: гранти читаються з БД на кожен запит
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=expires_minutes or settings.jwt_expires_min)
    payload = {
        "sub": subject,
        "type": "access",
        "jti": uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)


def decode_token(token: str) -> Dict[str, Any]:
    try:
        data = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_alg])
    except JWTError as e:
        raise ValueError("invalid_token") from e
    if data.get("type") != "access" or "sub" not in data:
        raise ValueError("invalid_token_payload")
    return data
