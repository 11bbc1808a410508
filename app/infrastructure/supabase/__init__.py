"""Supabase integration: PostgREST client and the dashboard stats data source."""

from app.infrastructure.supabase._rest_client import PostgrestError, SupabaseRESTClient
from app.infrastructure.supabase.client import (
    close_supabase,
    init_supabase,
)
from app.infrastructure.supabase.stats_source import SupabaseStatsSource

__all__ = [
    "PostgrestError",
    "SupabaseRESTClient",
    "SupabaseStatsSource",
    "close_supabase",
    "init_supabase",
]
