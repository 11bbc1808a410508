"""Rate limiter instance for SlowAPI.

Shared so both main (app.state.limiter) and route modules can use the same
instance without circular imports. Central limit strings and decorators keep
rate limits DRY.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)

# Single source of truth for rate limit strings and decorators.
# A full refresh issues ~25 Supabase queries, so manual refresh is throttled.
REFRESH_LIMIT = "6/minute"
CACHE_CLEAR_LIMIT = "30/minute"
WEBHOOK_LIMIT = "600/minute"

limit_refresh = limiter.limit(REFRESH_LIMIT)
limit_cache_clear = limiter.limit(CACHE_CLEAR_LIMIT)
limit_webhook = limiter.limit(WEBHOOK_LIMIT)
