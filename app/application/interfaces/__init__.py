"""Application interfaces (ports): data source and service protocols.

Define contracts for infrastructure implementations (DIP).
No runtime imports from app.infrastructure or app.api.
"""

from app.application.interfaces.repositories import IStatsDataSource
from app.application.interfaces.services import IStatsCache, StatsListener

__all__ = [
    "IStatsCache",
    "IStatsDataSource",
    "StatsListener",
]
