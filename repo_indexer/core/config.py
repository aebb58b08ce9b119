# repo_indexer/core/config.py
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()  # load from .env


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    # OAuth apps
    GITHUB_CLIENT_ID: str = ""
    GITHUB_CLIENT_SECRET: str = ""
    GITHUB_REDIRECT_URI: str = "http://localhost:3001/api/auth/github/callback"
    GITHUB_CONNECT_REDIRECT_URI: str = "http://localhost:3001/api/github/oauth/callback"
    GITHUB_LOGIN_SCOPES: str = "user:email,read:user,repo"
    GITHUB_CONNECT_SCOPES: str = "repo,read:org,read:user,user:email"
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_REDIRECT_URI: str = "http://localhost:3001/api/auth/google/callback"

    # Auth
    JWT_SECRET: str = "supersecret"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_DAYS: int = 7
    OAUTH_STATE_TTL_SECONDS: int = 600
    OAUTH_STATE_MAX_PENDING: int = 10000

    # Frontend origin used for CORS and OAuth redirects
    CORS_ORIGIN: str = "http://localhost:3000"

    # External services
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_ACCESS_TOKEN: str = ""  # fallback for webhook events from unknown repos
    RAG_SERVICE_URL: str = "http://0.0.0.0:8002"
    WEBHOOK_RECEIVER_URL: str = "http://localhost:3001/api/github/webhook/event"
    WEBHOOK_SKIP_EXISTING: bool = True

    DATABASE_URL: str = "sqlite:///./repo_indexer.db"

    WALKER_CONCURRENCY: int = 8
    HTTP_TIMEOUT_SECONDS: float = 30.0

    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            GITHUB_CLIENT_ID=os.getenv("GITHUB_CLIENT_ID", defaults.GITHUB_CLIENT_ID),
            GITHUB_CLIENT_SECRET=os.getenv("GITHUB_CLIENT_SECRET", defaults.GITHUB_CLIENT_SECRET),
            GITHUB_REDIRECT_URI=os.getenv("GITHUB_REDIRECT_URI", defaults.GITHUB_REDIRECT_URI),
            GITHUB_CONNECT_REDIRECT_URI=os.getenv(
                "GITHUB_CONNECT_REDIRECT_URI", defaults.GITHUB_CONNECT_REDIRECT_URI
            ),
            GITHUB_LOGIN_SCOPES=os.getenv("GITHUB_LOGIN_SCOPES", defaults.GITHUB_LOGIN_SCOPES),
            GITHUB_CONNECT_SCOPES=os.getenv("GITHUB_CONNECT_SCOPES", defaults.GITHUB_CONNECT_SCOPES),
            GOOGLE_CLIENT_ID=os.getenv("GOOGLE_CLIENT_ID", defaults.GOOGLE_CLIENT_ID),
            GOOGLE_CLIENT_SECRET=os.getenv("GOOGLE_CLIENT_SECRET", defaults.GOOGLE_CLIENT_SECRET),
            GOOGLE_REDIRECT_URI=os.getenv("GOOGLE_REDIRECT_URI", defaults.GOOGLE_REDIRECT_URI),
            JWT_SECRET=os.getenv("JWT_SECRET", defaults.JWT_SECRET),
            JWT_ALGORITHM=os.getenv("JWT_ALGORITHM", defaults.JWT_ALGORITHM),
            JWT_EXPIRES_DAYS=int(os.getenv("JWT_EXPIRES_DAYS", defaults.JWT_EXPIRES_DAYS)),
            OAUTH_STATE_TTL_SECONDS=int(os.getenv("OAUTH_STATE_TTL_SECONDS", defaults.OAUTH_STATE_TTL_SECONDS)),
            OAUTH_STATE_MAX_PENDING=int(os.getenv("OAUTH_STATE_MAX_PENDING", defaults.OAUTH_STATE_MAX_PENDING)),
            CORS_ORIGIN=os.getenv("CORS_ORIGIN", defaults.CORS_ORIGIN),
            GITHUB_API_URL=os.getenv("GITHUB_API_URL", defaults.GITHUB_API_URL).rstrip("/"),
            GITHUB_ACCESS_TOKEN=os.getenv("GITHUB_ACCESS_TOKEN", defaults.GITHUB_ACCESS_TOKEN),
            RAG_SERVICE_URL=os.getenv("RAG_SERVICE_URL", defaults.RAG_SERVICE_URL).rstrip("/"),
            WEBHOOK_RECEIVER_URL=os.getenv("WEBHOOK_RECEIVER_URL", defaults.WEBHOOK_RECEIVER_URL),
            WEBHOOK_SKIP_EXISTING=_env_bool("WEBHOOK_SKIP_EXISTING", defaults.WEBHOOK_SKIP_EXISTING),
            DATABASE_URL=os.getenv("DATABASE_URL", defaults.DATABASE_URL),
            WALKER_CONCURRENCY=int(os.getenv("WALKER_CONCURRENCY", defaults.WALKER_CONCURRENCY)),
            HTTP_TIMEOUT_SECONDS=float(os.getenv("HTTP_TIMEOUT_SECONDS", defaults.HTTP_TIMEOUT_SECONDS)),
            API_PREFIX=os.getenv("API_PREFIX", defaults.API_PREFIX),
            LOG_LEVEL=os.getenv("LOG_LEVEL", defaults.LOG_LEVEL),
        )


@lru_cache
def get_settings() -> Settings:
    """Settings are assembled once per process; callers pass them on explicitly."""
    return Settings.from_env()
