"""
Bearer token handling for the payout API.

Tokens are HS256 JWTs signed with SECRET_KEY. The subject is the user id:
for seller routes it is the seller whose payouts are read, for admin routes
it is recorded as the actor on payout events. Admins carry role="admin".
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Any
import uuid

from jose import JWTError, jwt

from sellerhub.config import settings

ACCESS_TOKEN_TYPE = "access"


def create_access_token(
    subject: str | uuid.UUID,
    role: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Issue an access token for a seller or admin user id."""
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    claims: dict[str, Any] = {
        "sub": str(subject),
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    if role:
        claims["role"] = role

    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_access_token(token: str) -> Optional[dict[str, Any]]:
    """
    Return the claims of a valid access token.

    None for a bad signature, an expired token, a non-access token or a
    token without subject.
    """
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None

    if claims.get("type") != ACCESS_TOKEN_TYPE or not claims.get("sub"):
        return None
    return claims
