"""
Bearer-token request context.

Sessions and logins belong to the auth collaborator; this module only turns a
signed access token into the ``(user_id, client_id, role)`` triple every credit
route needs, and gates roles.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import settings
from .request_context import set_client_id

logger = logging.getLogger("shipcredits.security")

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLE_MASTER_ADMIN = "master_admin"
KNOWN_ROLES = {ROLE_USER, ROLE_ADMIN, ROLE_MASTER_ADMIN}

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class RequestContext:
    user_id: str
    client_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role in {ROLE_ADMIN, ROLE_MASTER_ADMIN}


def create_access_token(
    *,
    user_id: str,
    client_id: str,
    role: str = ROLE_USER,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload = {
        "sub": str(user_id),
        "client_id": str(client_id),
        "role": role,
        "exp": expire,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Optional[RequestContext]:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    user_id = payload.get("sub")
    client_id = payload.get("client_id")
    role = str(payload.get("role") or ROLE_USER)
    if not user_id or not client_id or role not in KNOWN_ROLES:
        return None
    return RequestContext(user_id=str(user_id), client_id=str(client_id), role=role)


def get_request_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> RequestContext:
    """FastAPI dependency resolving the authenticated caller."""
    if credentials is None or (credentials.scheme or "").lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    context = decode_token(credentials.credentials)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    set_client_id(context.client_id)
    return context


def require_roles(*roles: str):
    """Build a dependency that only lets the given roles through."""
    allowed = set(roles)

    def _dependency(context: RequestContext = Depends(get_request_context)) -> RequestContext:
        if context.role not in allowed:
            logger.warning(
                "Role denied user=%s role=%s required=%s",
                context.user_id,
                context.role,
                ",".join(sorted(allowed)),
            )
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return context

    return _dependency


require_admin = require_roles(ROLE_ADMIN, ROLE_MASTER_ADMIN)
require_master_admin = require_roles(ROLE_MASTER_ADMIN)
