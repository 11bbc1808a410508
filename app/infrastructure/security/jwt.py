"""Supabase access token verification.

Tokens are issued by Supabase Auth (HS256, signed with the project's JWT
secret). The user id is the sub claim.
"""

from typing import Any

from jose import JWTError, jwt

from app.core.config import get_settings
from app.domain.exceptions import AuthenticationException

_ALGORITHMS = ["HS256"]


def verify_token(token: str) -> dict[str, Any]:
    """Verify and decode a Supabase access token. Returns the payload.

    Enforces signature, expiry, audience, and presence of sub.

    Raises:
        AuthenticationException: If verification is not configured, or the
            token is invalid, expired, or missing required claims.
    """
    settings = get_settings()
    secret = settings.supabase_jwt_secret.get_secret_value()
    if not secret:
        raise AuthenticationException("Token verification is not configured (SUPABASE_JWT_SECRET)")
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=_ALGORITHMS,
            audience=settings.supabase_jwt_audience,
            options={"require_exp": True, "require_sub": True},
        )
    except JWTError as e:
        raise AuthenticationException(f"Invalid token: {e!s}") from e
    if not payload.get("sub"):
        raise AuthenticationException("Token missing required claim: sub")
    return payload


def user_id_from_token(token: str) -> str:
    """Return the authenticated user id (sub) from a verified token."""
    return str(verify_token(token)["sub"])
