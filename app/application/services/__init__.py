"""Application services: pure stats aggregation and incremental patching."""

from app.application.services.stats_patcher import (
    PatchResult,
    RefreshDebouncer,
    apply_change,
)

__all__ = [
    "PatchResult",
    "RefreshDebouncer",
    "apply_change",
]
