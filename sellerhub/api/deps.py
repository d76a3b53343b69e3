"""
Request dependencies: database session and bearer identity.

Seller routes scope every query to ``CurrentUser.id``. Admin routes take
``AdminUser`` and record its id as the actor on payout events.
"""
from dataclasses import dataclass
from typing import Annotated
import logging
import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from sellerhub.core.security import verify_access_token
from sellerhub.database import get_db

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

ADMIN_ROLE = "admin"
SELLER_ROLE = "seller"


@dataclass
class AuthenticatedUser:
    id: uuid.UUID
    role: str = SELLER_ROLE

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> AuthenticatedUser:
    if credentials is None:
        raise _unauthorized()

    claims = verify_access_token(credentials.credentials)
    if claims is None:
        logger.warning("Rejected bearer token: bad signature, expired or wrong type")
        raise _unauthorized()

    try:
        user_id = uuid.UUID(claims["sub"])
    except ValueError:
        logger.warning(f"Rejected bearer token with non-uuid subject {claims['sub']!r}")
        raise _unauthorized()

    return AuthenticatedUser(id=user_id, role=claims.get("role") or SELLER_ROLE)


async def require_admin(
    user: Annotated[AuthenticatedUser, Depends(get_current_user)],
) -> AuthenticatedUser:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


DB = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
AdminUser = Annotated[AuthenticatedUser, Depends(require_admin)]
