# repo_indexer/api/github_routes.py
import json
import logging
import urllib.parse
from typing import Any

import httpx
import jwt
from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from repo_indexer.api.deps import (
    bearer_token,
    get_current_user_id,
    get_http_client,
    get_oauth_client,
    get_oauth_states,
    get_orchestrator,
    get_settings,
    get_store,
    get_webhook_manager,
)
from repo_indexer.core.config import Settings
from repo_indexer.core.errors import ApiError
from repo_indexer.core.security import OAuthStateStore, decode_access_token
from repo_indexer.github_client import GitHubAPIError, GitHubClient
from repo_indexer.oauth_client import OAuthClient, OAuthProviderError, TokenExchangeError
from repo_indexer.services.credential_store import CredentialStore
from repo_indexer.services.github_token_service import get_token_for_user
from repo_indexer.services.orchestrator import IntegrationInputError, IntegrationOrchestrator
from repo_indexer.services.webhook_manager import WebhookManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/github", tags=["github"])


# ----- Pydantic schemas -----

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class OwnerIn(CamelModel):
    login: str | None = None
    id: int | None = None
    avatar_url: str | None = None
    html_url: str | None = None


class RepositoryIn(CamelModel):
    id: int
    name: str | None = None
    full_name: str | None = None
    description: str | None = None
    html_url: str | None = None
    clone_url: str | None = None
    ssh_url: str | None = None
    language: str | None = None
    size: int | None = None
    stargazers_count: int | None = None
    forks_count: int | None = None
    open_issues_count: int | None = None
    is_private: bool | None = None
    owner: OwnerIn | None = None


class SaveIntegrationIn(CamelModel):
    repository: RepositoryIn | None = None
    integration_settings: dict[str, Any] | None = None
    notification_settings: dict[str, Any] | None = None
    access_token: str | None = None


class RepositoriesIn(CamelModel):
    access_token: str | None = None


class WebhookRegisterIn(CamelModel):
    repo_full_name: str | None = None
    access_token: str | None = None


def summary_dict(repository: RepositoryIn) -> dict:
    return repository.model_dump(by_alias=True, exclude_none=True)


# ----- Connection status / stored repos -----

@router.get("/status")
def github_status(user_id: int = Depends(get_current_user_id), store: CredentialStore = Depends(get_store)):
    user = store.get_user(user_id)
    if not user:
        raise ApiError(404, "User not found")
    github = user.github or {}
    return {
        "connected": bool(github.get("accessToken")),
        "accessToken": github.get("accessToken"),
        "githubUser": {
            "username": github.get("username"),
            "avatarUrl": github.get("avatarUrl"),
            "profileUrl": github.get("profileUrl"),
        }
        if github.get("username")
        else None,
    }


@router.get("/stored-repositories")
def stored_repositories(user_id: int = Depends(get_current_user_id), store: CredentialStore = Depends(get_store)):
    user = store.get_user(user_id)
    if not user or not isinstance((user.github or {}).get("repos"), list):
        raise ApiError(404, "No stored repositories found")
    return {"repositories": user.github_repos}


@router.delete("/repository/{repository_id}")
async def delete_repository(
    repository_id: int,
    user_id: int = Depends(get_current_user_id),
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.delete_integration(user_id, repository_id)


# ----- Repo-connect OAuth -----

@router.get("/oauth/init")
def oauth_init(
    user_id: int = Depends(get_current_user_id),
    oauth: OAuthClient = Depends(get_oauth_client),
    states: OAuthStateStore = Depends(get_oauth_states),
):
    state = states.issue()
    return {"success": True, "authUrl": oauth.authorization_url("github", state, connect=True), "state": state}


def _resolve_user_id(authorization: str | None, query_token: str | None, settings: Settings) -> int | None:
    for candidate in (bearer_token(authorization), query_token):
        if not candidate:
            continue
        try:
            return decode_access_token(candidate, settings)
        except (jwt.InvalidTokenError, ValueError):
            continue
    return None


@router.get("/oauth/callback")
async def oauth_callback(
    code: str | None = None,
    state: str | None = None,
    token: str | None = None,
    authorization: str | None = Header(default=None),
    oauth: OAuthClient = Depends(get_oauth_client),
    states: OAuthStateStore = Depends(get_oauth_states),
    store: CredentialStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    frontend = settings.CORS_ORIGIN
    if not code:
        return RedirectResponse(f"{frontend}?error=no_code", status_code=302)
    if not states.consume(state):
        return RedirectResponse(f"{frontend}?error=invalid_state", status_code=302)

    try:
        access_token = await oauth.exchange_code("github", code, connect=True)
        identity = await oauth.fetch_identity("github", access_token)
        github = GitHubClient(access_token, client=client, base_url=settings.GITHUB_API_URL)
        repositories = [dict(r, status="active") for r in await github.list_repositories()]
    except TokenExchangeError:
        return RedirectResponse(f"{frontend}?error=no_token", status_code=302)
    except (OAuthProviderError, GitHubAPIError) as e:
        logger.error("GitHub OAuth callback error: %s", e)
        return RedirectResponse(f"{frontend}?error=oauth_failed", status_code=302)

    user_id = _resolve_user_id(authorization, token, settings)
    if user_id is not None:
        user = store.get_user(user_id)
    else:
        # Fallback to email if not authenticated
        user = store.get_user_by_email(identity.email) if identity.email else None
    if user:
        store.set_github_connection(user, identity, access_token, repositories)
    else:
        logger.warning("GitHub connect for %s matched no user", identity.username)

    github_user = json.dumps(
        {
            "id": identity.provider_id,
            "login": identity.username,
            "name": identity.name,
            "avatarUrl": identity.avatar_url,
        }
    )
    query = urllib.parse.urlencode({"github_connected": "true", "user": github_user, "token": access_token})
    return RedirectResponse(f"{frontend}/analysis?{query}", status_code=302)


# ----- Repositories / integrations -----

@router.post("/repositories")
async def list_repositories(
    payload: RepositoriesIn,
    user_id: int = Depends(get_current_user_id),
    store: CredentialStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    access_token = payload.access_token or get_token_for_user(store, user_id)
    if not access_token:
        raise ApiError(400, "Access token is required")

    github = GitHubClient(access_token, client=client, base_url=settings.GITHUB_API_URL)
    try:
        repositories = await github.list_repositories()
    except GitHubAPIError as e:
        logger.error("GitHub repositories error: %s", e)
        raise ApiError(500, "Failed to fetch repositories", e.provider_message)
    return {"success": True, "repositories": repositories}


@router.post("/save-integration")
async def save_integration(
    payload: SaveIntegrationIn,
    user_id: int = Depends(get_current_user_id),
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    try:
        return await orchestrator.save_integration(
            user_id,
            summary_dict(payload.repository) if payload.repository else None,
            payload.access_token,
            payload.integration_settings,
            payload.notification_settings,
        )
    except IntegrationInputError as e:
        raise ApiError(400, str(e))


# ----- Webhooks -----

@router.post("/webhook/register")
async def register_webhook(
    payload: WebhookRegisterIn,
    user_id: int = Depends(get_current_user_id),
    webhooks: WebhookManager = Depends(get_webhook_manager),
    settings: Settings = Depends(get_settings),
):
    if not payload.repo_full_name or not payload.access_token:
        raise ApiError(400, "repoFullName and accessToken required")
    try:
        hook = await webhooks.register(payload.repo_full_name, payload.access_token, settings.WEBHOOK_RECEIVER_URL)
    except GitHubAPIError as e:
        logger.error("Webhook registration error: %s", e)
        raise ApiError(500, "Failed to register webhook", e.provider_message)
    return {"success": True, "webhook": hook}


@router.post("/webhook/event")
async def webhook_event(
    request: Request,
    x_github_event: str | None = Header(default=None),
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    # TODO: verify X-Hub-Signature-256 against a shared webhook secret
    try:
        payload = await request.json()
    except ValueError:
        payload = None
    try:
        return await orchestrator.handle_webhook_event(payload, x_github_event)
    except Exception as e:
        logger.exception("Webhook event error")
        raise ApiError(500, "Failed to process webhook event", str(e))
