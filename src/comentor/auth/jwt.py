"""Bearer token verification.

Tokens are minted by the platform's auth service with a shared HS256
secret. This service only verifies them and reads two claims: the subject
(user id) and an optional ``role``.
"""

from __future__ import annotations

from dataclasses import dataclass

import jwt

from comentor.config import get_settings

ROLE_ADMIN = "admin"


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    role: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def verify_token(token: str, expected_type: str = "access") -> TokenClaims:
    """Decode and validate an access token.

    Raises:
        jwt.InvalidTokenError: bad signature, wrong issuer, expired, wrong
            ``type`` claim or a non-numeric subject.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise jwt.InvalidTokenError("Token has expired") from None

    token_type = payload.get("type")
    if token_type != expected_type:
        raise jwt.InvalidTokenError(f"Expected token type '{expected_type}', got '{token_type}'")

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise jwt.InvalidTokenError("Token subject is not a user id") from None

    return TokenClaims(user_id=user_id, role=payload.get("role"))
