"""Core constants: table names, cache key prefixes and stats limits.

Single source of truth for the Supabase tables the dashboard reads and
for the caps applied to capped queries and snapshot lists.
"""

# Supabase tables backing dashboard counters
TABLE_NOTES = "notes"
TABLE_RECORDINGS = "class_recordings"
TABLE_DOCUMENTS = "documents"
TABLE_MESSAGES = "chat_messages"
TABLE_SCHEDULE_ITEMS = "schedule_items"
TABLE_QUIZ_ATTEMPTS = "quiz_attempts"

# Supabase RPC functions (server-side aggregates)
RPC_ACTIVITY_STATS = "get_user_activity_stats"
RPC_LEARNING_VELOCITY = "get_learning_velocity"
RPC_USER_STREAK = "get_user_streak"

# Cache key prefixes
CACHE_PREFIX_DASHBOARD_STATS = "dashboard_stats"
CHANNEL_PREFIX_DB_CHANGES = "db_changes"

# Snapshot and query caps
RECENT_ITEMS_LIMIT = 3
TOP_CATEGORIES_LIMIT = 5
HOURLY_ROWS_LIMIT = 1000
ACTIVITY_ROWS_LIMIT = 1000
STREAK_ROWS_LIMIT = 1000
STUDY_TIME_ROWS_LIMIT = 500
DOCUMENT_ROWS_LIMIT = 500
CATEGORY_ROWS_LIMIT = 100
SCHEDULE_ROWS_LIMIT = 100
QUIZ_ROWS_LIMIT = 50

# Learning velocity: weeks requested from the RPC vs. sampled by the fallback
VELOCITY_RPC_WEEKS = 12
VELOCITY_SAMPLED_WEEKS = 4

WEEKDAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")
DEFAULT_PRODUCTIVE_DAY = "Mon"
DEFAULT_PRODUCTIVE_HOUR = 14
DEFAULT_CATEGORY = "general"
