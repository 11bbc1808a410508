"""Application layer: DTOs, interfaces, services, use cases.

Depends only on domain and protocol definitions. Infrastructure implements
the interfaces (Supabase data source, stats cache).
"""

from app.application.interfaces import IStatsCache, IStatsDataSource, StatsListener

__all__ = [
    "IStatsCache",
    "IStatsDataSource",
    "StatsListener",
]
