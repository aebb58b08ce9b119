# repo_indexer/api/deps.py
import jwt
import httpx
from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from repo_indexer.core.config import Settings
from repo_indexer.core.db import get_db
from repo_indexer.core.errors import ApiError
from repo_indexer.core.security import OAuthStateStore, decode_access_token
from repo_indexer.oauth_client import OAuthClient
from repo_indexer.services.credential_store import CredentialStore
from repo_indexer.services.index_forwarder import IndexForwarder
from repo_indexer.services.orchestrator import IntegrationOrchestrator
from repo_indexer.services.repo_walker import RepositoryWalker
from repo_indexer.services.webhook_manager import WebhookManager


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_oauth_states(request: Request) -> OAuthStateStore:
    # In memory, single process
    return request.app.state.oauth_states


def get_store(db: Session = Depends(get_db)) -> CredentialStore:
    return CredentialStore(db)


def bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def get_current_user_id(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> int:
    if not authorization:
        raise ApiError(401, "No token")
    token = bearer_token(authorization)
    if not token:
        raise ApiError(401, "Invalid token")
    try:
        return decode_access_token(token, settings)
    except (jwt.InvalidTokenError, ValueError):
        raise ApiError(401, "Invalid token") from None


def get_oauth_client(
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> OAuthClient:
    return OAuthClient(settings, client)


def get_walker(
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> RepositoryWalker:
    return RepositoryWalker(client, base_url=settings.GITHUB_API_URL, concurrency=settings.WALKER_CONCURRENCY)


def get_webhook_manager(
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> WebhookManager:
    return WebhookManager(client, base_url=settings.GITHUB_API_URL, skip_existing=settings.WEBHOOK_SKIP_EXISTING)


def get_orchestrator(
    store: CredentialStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
    walker: RepositoryWalker = Depends(get_walker),
    webhooks: WebhookManager = Depends(get_webhook_manager),
) -> IntegrationOrchestrator:
    return IntegrationOrchestrator(
        store=store,
        settings=settings,
        webhooks=webhooks,
        walker=walker,
        forwarder=IndexForwarder(client, settings.RAG_SERVICE_URL),
    )
