"""Supabase REST client lifecycle.

Initialized at app startup from SUPABASE_URL and SUPABASE_SERVICE_KEY.
The service-role key bypasses row-level security, so every query issued
through the stats data source filters by user_id explicitly.
"""

import logging

from app.core.config import get_settings
from app.infrastructure.supabase._rest_client import SupabaseRESTClient

logger = logging.getLogger(__name__)

_supabase_client: SupabaseRESTClient | None = None


def init_supabase() -> SupabaseRESTClient:
    """Create the shared Supabase client (idempotent)."""
    global _supabase_client
    if _supabase_client is None:
        settings = get_settings()
        _supabase_client = SupabaseRESTClient(
            settings.supabase_url,
            settings.supabase_service_key.get_secret_value(),
            timeout=settings.supabase_timeout_seconds,
        )
        logger.info("Supabase REST client initialized for %s", settings.supabase_url)
    return _supabase_client


async def close_supabase() -> None:
    """Close the client's HTTP connection pool. Call from app shutdown."""
    global _supabase_client
    if _supabase_client is not None:
        await _supabase_client.aclose()
        _supabase_client = None
        logger.info("Supabase HTTP client closed")
