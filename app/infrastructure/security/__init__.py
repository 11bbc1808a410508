"""Security: Supabase access token verification."""

from app.infrastructure.security.jwt import user_id_from_token, verify_token

__all__ = [
    "user_id_from_token",
    "verify_token",
]
