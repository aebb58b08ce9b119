from repo_indexer.models.user import User
from repo_indexer.models.repository import (
    AnalysisRecord,
    RepositoryIntegration,
    DEFAULT_INTEGRATION_SETTINGS,
    DEFAULT_NOTIFICATION_SETTINGS,
)

__all__ = [
    "User",
    "RepositoryIntegration",
    "AnalysisRecord",
    "DEFAULT_INTEGRATION_SETTINGS",
    "DEFAULT_NOTIFICATION_SETTINGS",
]
