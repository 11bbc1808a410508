"""Domain layer: enums and exceptions.

No dependencies on infrastructure or presentation. Used by application
and infrastructure layers.
"""

from app.domain.enums import ChangeType, DocumentStatus, StatsPhase
from app.domain.exceptions import (
    AuthenticationException,
    ChangeEventException,
    DataSourceException,
    StudyHubException,
    ValidationException,
)

__all__ = [
    # Enums
    "ChangeType",
    "DocumentStatus",
    "StatsPhase",
    # Exceptions
    "AuthenticationException",
    "ChangeEventException",
    "DataSourceException",
    "StudyHubException",
    "ValidationException",
]
