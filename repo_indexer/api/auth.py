# repo_indexer/api/auth.py
import logging
import urllib.parse

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from repo_indexer.api.deps import get_oauth_client, get_oauth_states, get_settings, get_store
from repo_indexer.core.config import Settings
from repo_indexer.core.errors import ApiError
from repo_indexer.core.security import OAuthStateStore, create_access_token, hash_password, verify_password
from repo_indexer.github_client import GitHubAPIError
from repo_indexer.oauth_client import OAuthClient, OAuthProviderError, TokenExchangeError
from repo_indexer.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# ----- Pydantic schemas -----

class RegisterIn(BaseModel):
    name: str | None = None
    email: str | None = None
    password: str | None = None


class LoginIn(BaseModel):
    email: str | None = None
    password: str | None = None


def _login_redirect(settings: Settings, **params) -> RedirectResponse:
    url = f"{settings.CORS_ORIGIN}/auth/login?" + urllib.parse.urlencode(params)
    return RedirectResponse(url, status_code=302)


def _auth_payload(user, settings: Settings) -> dict:
    return {
        "success": True,
        "token": create_access_token(user.id, settings),
        "user": {"id": user.id, "name": user.name, "email": user.email},
    }


# ----- OAuth login (GitHub / Google) -----

def _init(provider: str, oauth: OAuthClient, states: OAuthStateStore) -> RedirectResponse:
    # 1. Generate random state token (protects against CSRF)
    state = states.issue()
    # 2. Redirect the user to the provider
    return RedirectResponse(oauth.authorization_url(provider, state), status_code=302)


async def _callback(
    provider: str,
    code: str | None,
    state: str | None,
    oauth: OAuthClient,
    states: OAuthStateStore,
    store: CredentialStore,
    settings: Settings,
) -> RedirectResponse:
    # 1. Validate state
    if not states.consume(state):
        return _login_redirect(settings, error="invalid_state")
    if not code:
        return _login_redirect(settings, error="oauth_failed")

    try:
        # 2. Exchange code for access_token
        access_token = await oauth.exchange_code(provider, code)
        # 3. Use access_token to fetch the identity
        identity = await oauth.fetch_identity(provider, access_token)
    except TokenExchangeError:
        logger.warning("%s OAuth: token exchange returned no token", provider)
        return _login_redirect(settings, error="no_token")
    except (OAuthProviderError, GitHubAPIError) as e:
        logger.error("%s OAuth error: %s", provider, e)
        return _login_redirect(settings, error="oauth_failed")

    if not identity.email:
        logger.warning("%s OAuth: identity %s has no email", provider, identity.username)
        return _login_redirect(settings, error="no_email")

    # 4. Store user + token, issue JWT
    user = store.upsert_oauth_user(identity, access_token)
    logger.info("User %s logged in with %s", user.id, provider)
    return _login_redirect(settings, token=create_access_token(user.id, settings))


@router.get("/github/init")
def github_init(
    oauth: OAuthClient = Depends(get_oauth_client), states: OAuthStateStore = Depends(get_oauth_states)
):
    return _init("github", oauth, states)


@router.get("/github/callback")
async def github_callback(
    code: str | None = None,
    state: str | None = None,
    oauth: OAuthClient = Depends(get_oauth_client),
    states: OAuthStateStore = Depends(get_oauth_states),
    store: CredentialStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    return await _callback("github", code, state, oauth, states, store, settings)


@router.get("/google/init")
def google_init(
    oauth: OAuthClient = Depends(get_oauth_client), states: OAuthStateStore = Depends(get_oauth_states)
):
    return _init("google", oauth, states)


@router.get("/google/callback")
async def google_callback(
    code: str | None = None,
    state: str | None = None,
    oauth: OAuthClient = Depends(get_oauth_client),
    states: OAuthStateStore = Depends(get_oauth_states),
    store: CredentialStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    return await _callback("google", code, state, oauth, states, store, settings)


# ----- Local accounts -----

@router.post("/register")
def register(
    payload: RegisterIn,
    store: CredentialStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    if not payload.email or not payload.password:
        raise ApiError(400, "Email and password required")
    if store.get_user_by_email(payload.email):
        raise ApiError(400, "Email already registered")
    user = store.create_local_user(payload.name, payload.email, hash_password(payload.password))
    return _auth_payload(user, settings)


@router.post("/login")
def login(
    payload: LoginIn,
    store: CredentialStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    user = store.get_user_by_email(payload.email) if payload.email else None
    if not user or not verify_password(payload.password, user.password_hash):
        raise ApiError(400, "Invalid credentials")
    return _auth_payload(user, settings)
