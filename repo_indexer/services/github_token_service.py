# repo_indexer/services/github_token_service.py
from repo_indexer.models import RepositoryIntegration
from repo_indexer.services.credential_store import CredentialStore


def get_token_for_repository(
    store: CredentialStore, github_id: int | None, fallback: str | None = None
) -> tuple[str | None, RepositoryIntegration | None]:
    """Token stored for a connected repository, else the configured fallback."""
    integration = store.get_integration_by_github_id(github_id) if github_id is not None else None
    if integration and integration.access_token:
        return integration.access_token, integration
    return (fallback or None), integration


def get_token_for_user(store: CredentialStore, user_id: int) -> str | None:
    user = store.get_user(user_id)
    if not user:
        return None
    return (user.github or {}).get("accessToken")
