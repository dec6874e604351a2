"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from comentor.auth.jwt import TokenClaims, verify_token
from comentor.database import get_session
from comentor.db.models import User

_bearer = HTTPBearer()


async def get_token_claims(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
) -> TokenClaims:
    """401 unless the bearer token verifies."""
    try:
        return verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e


async def get_current_user(
    claims: TokenClaims = Depends(get_token_claims),
    db: AsyncSession = Depends(get_session),
) -> User:
    """The token's user. A token for a deleted or unknown user is a 401."""
    user = await db.get(User, claims.user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def require_admin(claims: TokenClaims = Depends(get_token_claims)) -> TokenClaims:
    if not claims.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return claims
