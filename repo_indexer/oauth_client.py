# repo_indexer/oauth_client.py
import urllib.parse
from dataclasses import dataclass, field

import httpx

from repo_indexer.core.config import Settings
from repo_indexer.github_client import GitHubClient, GitHubAPIError

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


class OAuthProviderError(RuntimeError):
    """The provider answered with an HTTP error or could not be reached."""

    def __init__(self, provider: str, status_code: int | None, body):
        self.provider = provider
        self.status_code = status_code
        self.body = body
        super().__init__(f"{provider} OAuth error: {status_code} - {body}")


class TokenExchangeError(RuntimeError):
    """The token endpoint answered, but without an access token."""

    def __init__(self, provider: str, body=None):
        self.provider = provider
        self.body = body
        super().__init__(f"{provider} token exchange returned no access token")


@dataclass
class OAuthIdentity:
    provider: str
    email: str | None
    name: str | None
    username: str | None
    avatar_url: str | None
    profile_url: str | None = None
    bio: str | None = None
    location: str | None = None
    provider_id: int | str | None = None
    raw: dict = field(default_factory=dict)


class OAuthClient:
    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self.settings = settings
        self.client = client

    def authorization_url(self, provider: str, state: str, connect: bool = False) -> str:
        """Build the provider's consent URL. ``connect`` selects the repo-connect variant."""
        if provider == "github":
            params = {
                "client_id": self.settings.GITHUB_CLIENT_ID,
                "redirect_uri": (
                    self.settings.GITHUB_CONNECT_REDIRECT_URI if connect else self.settings.GITHUB_REDIRECT_URI
                ),
                "scope": self.settings.GITHUB_CONNECT_SCOPES if connect else self.settings.GITHUB_LOGIN_SCOPES,
                "state": state,
            }
            return GITHUB_AUTHORIZE_URL + "?" + urllib.parse.urlencode(params)
        if provider == "google":
            params = {
                "client_id": self.settings.GOOGLE_CLIENT_ID,
                "redirect_uri": self.settings.GOOGLE_REDIRECT_URI,
                "response_type": "code",
                "scope": "openid email profile",
                "state": state,
                "access_type": "offline",
                "prompt": "consent",
            }
            return GOOGLE_AUTHORIZE_URL + "?" + urllib.parse.urlencode(params)
        raise ValueError(f"Unknown OAuth provider: {provider}")

    async def exchange_code(self, provider: str, code: str, connect: bool = False) -> str:
        if provider == "github":
            url = GITHUB_TOKEN_URL
            data = {
                "client_id": self.settings.GITHUB_CLIENT_ID,
                "client_secret": self.settings.GITHUB_CLIENT_SECRET,
                "code": code,
                "redirect_uri": (
                    self.settings.GITHUB_CONNECT_REDIRECT_URI if connect else self.settings.GITHUB_REDIRECT_URI
                ),
            }
        elif provider == "google":
            url = GOOGLE_TOKEN_URL
            data = {
                "code": code,
                "client_id": self.settings.GOOGLE_CLIENT_ID,
                "client_secret": self.settings.GOOGLE_CLIENT_SECRET,
                "redirect_uri": self.settings.GOOGLE_REDIRECT_URI,
                "grant_type": "authorization_code",
            }
        else:
            raise ValueError(f"Unknown OAuth provider: {provider}")

        try:
            resp = await self.client.post(url, data=data, headers={"Accept": "application/json"})
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise OAuthProviderError(provider, e.response.status_code, e.response.text) from e
        except httpx.HTTPError as e:
            raise OAuthProviderError(provider, None, str(e)) from e

        try:
            token_data = resp.json()
        except ValueError:
            token_data = {}
        access_token = token_data.get("access_token") if isinstance(token_data, dict) else None
        if not access_token:
            # GitHub reports bad codes as 200 {"error": "bad_verification_code"}
            raise TokenExchangeError(provider, token_data)
        return access_token

    async def fetch_identity(self, provider: str, access_token: str) -> OAuthIdentity:
        if provider == "github":
            return await self._github_identity(access_token)
        if provider == "google":
            return await self._google_identity(access_token)
        raise ValueError(f"Unknown OAuth provider: {provider}")

    async def _github_identity(self, access_token: str) -> OAuthIdentity:
        github = GitHubClient(access_token, client=self.client, base_url=self.settings.GITHUB_API_URL)
        user = await github.get_user()
        email = user.get("email")
        try:
            emails = await github.get_user_emails()
            primary = next((e for e in emails if e.get("primary") and e.get("verified")), None)
            if primary:
                email = primary.get("email")
        except GitHubAPIError:
            # Tokens without user:email scope cannot read /user/emails
            pass
        return OAuthIdentity(
            provider="github",
            email=email,
            name=user.get("name") or user.get("login"),
            username=user.get("login"),
            avatar_url=user.get("avatar_url"),
            profile_url=user.get("html_url"),
            bio=user.get("bio"),
            location=user.get("location"),
            provider_id=user.get("id"),
            raw=user,
        )

    async def _google_identity(self, access_token: str) -> OAuthIdentity:
        try:
            resp = await self.client.get(
                GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"}
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise OAuthProviderError("google", e.response.status_code, e.response.text) from e
        except httpx.HTTPError as e:
            raise OAuthProviderError("google", None, str(e)) from e
        user = resp.json()
        return OAuthIdentity(
            provider="google",
            email=user.get("email"),
            name=user.get("name"),
            username=user.get("email"),
            avatar_url=user.get("picture"),
            provider_id=user.get("id"),
            raw=user,
        )
