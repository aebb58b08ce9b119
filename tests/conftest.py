"""Shared pytest fixtures.

Outbound HTTP never leaves the process: ``FakeUpstream`` answers for the
GitHub REST API, raw.githubusercontent.com, the OAuth token/identity
endpoints and the indexing service, and is plugged into the app through
``httpx.MockTransport``.
"""

import itertools
import json
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient

from repo_indexer.core.config import Settings
from repo_indexer.main import create_app
from repo_indexer.services.credential_store import CredentialStore

RAG_URL = "http://rag.test"
WEBHOOK_URL = "http://backend.test/api/github/webhook/event"
FRONTEND = "http://frontend.test"


def _json(status_code: int, data) -> httpx.Response:
    return httpx.Response(status_code, json=data)


class FakeUpstream:
    """In-memory stand-in for every external HTTP service the backend talks to."""

    def __init__(self):
        self.files: dict[str, dict[str, dict]] = {}   # full_name -> path -> {content, size}
        self.hooks: dict[str, list[dict]] = {}
        self._hook_ids = itertools.count(1)
        self.missing_downloads: set[str] = set()      # "owner/repo:path" whose raw download 404s
        self.broken_dirs: set[str] = set()            # "owner/repo:path" whose listing 500s
        self.garbled_paths: set[str] = set()          # "owner/repo:path" answered 200 with a non-JSON body
        self.hooks_fail = False
        self.rag_status = 200
        self.rag_answer = {"answer": "42"}
        self.index_requests: list[dict] = []
        self.delete_requests: list[dict] = []
        self.query_requests: list[dict] = []
        self.requests: list[httpx.Request] = []

        self.token_response = {"access_token": "gho_exchangedtoken1", "token_type": "bearer"}
        self.github_user = {
            "id": 777,
            "login": "octocat",
            "name": "The Octocat",
            "email": None,
            "avatar_url": "https://avatars.test/octocat",
            "html_url": "https://github.com/octocat",
            "bio": "cat",
            "location": "SF",
        }
        self.github_emails = [
            {"email": "secondary@example.com", "primary": False, "verified": True},
            {"email": "octocat@example.com", "primary": True, "verified": True},
        ]
        self.google_user = {"id": "g-1", "email": "gina@example.com", "name": "Gina", "picture": "https://pic.test/g"}
        self.user_repos = [
            {
                "id": 42,
                "name": "r",
                "full_name": "o/r",
                "description": "demo",
                "html_url": "https://github.com/o/r",
                "language": "Go",
                "size": 10,
                "stargazers_count": 1,
                "forks_count": 2,
                "open_issues_count": 3,
                "private": False,
                "owner": {"login": "o", "id": 5, "avatar_url": "https://avatars.test/o", "html_url": "https://github.com/o"},
            }
        ]

    # ----- setup helpers -----

    def add_file(self, full_name: str, path: str, content: str = "x", size: int | None = None):
        self.files.setdefault(full_name, {})[path] = {
            "content": content,
            "size": len(content.encode()) if size is None else size,
        }

    def add_hook(self, full_name: str, url: str) -> dict:
        hook = {"id": next(self._hook_ids), "config": {"url": url, "content_type": "json"}, "events": ["push"]}
        self.hooks.setdefault(full_name, []).append(hook)
        return hook

    def requests_to(self, host: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]

    # ----- GitHub contents -----

    def _entry(self, full_name: str, path: str, info: dict) -> dict:
        return {
            "name": path.rsplit("/", 1)[-1],
            "path": path,
            "type": "file",
            "size": info["size"],
            "download_url": f"https://raw.githubusercontent.com/{full_name}/main/{path}",
        }

    def _listing(self, full_name: str, path: str):
        tree = self.files.get(full_name, {})
        prefix = f"{path}/" if path else ""
        entries, dirs = [], set()
        for file_path, info in tree.items():
            if not file_path.startswith(prefix):
                continue
            rest = file_path[len(prefix):]
            if "/" in rest:
                dirs.add(rest.split("/", 1)[0])
            else:
                entries.append(self._entry(full_name, file_path, info))
        for name in sorted(dirs):
            entries.append({"name": name, "path": prefix + name, "type": "dir", "size": 0, "download_url": None})
        return entries

    def _contents(self, full_name: str, path: str) -> httpx.Response:
        if f"{full_name}:{path}" in self.broken_dirs:
            return _json(500, {"message": "Server Error"})
        if f"{full_name}:{path}" in self.garbled_paths:
            return httpx.Response(200, text="oops")
        tree = self.files.get(full_name)
        if tree is None:
            return _json(404, {"message": "Not Found"})
        if path in tree:
            return _json(200, self._entry(full_name, path, tree[path]))
        listing = self._listing(full_name, path)
        if path and not listing:
            return _json(404, {"message": "Not Found"})
        return _json(200, listing)

    def _hooks(self, request: httpx.Request, full_name: str, rest: list[str]) -> httpx.Response:
        if self.hooks_fail:
            return _json(500, {"message": "hooks unavailable"})
        hooks = self.hooks.setdefault(full_name, [])
        if request.method == "GET" and not rest:
            return _json(200, hooks)
        if request.method == "POST" and not rest:
            body = json.loads(request.content)
            hook = {"id": next(self._hook_ids), "config": body["config"], "events": body["events"]}
            hooks.append(hook)
            return _json(201, hook)
        if request.method == "DELETE" and rest:
            hook_id = int(rest[0])
            self.hooks[full_name] = [h for h in hooks if h["id"] != hook_id]
            return httpx.Response(204)
        return _json(404, {"message": "Not Found"})

    # ----- dispatcher -----

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host, path = request.url.host, request.url.path

        if host == "api.github.com":
            if path == "/user":
                return _json(200, self.github_user)
            if path == "/user/emails":
                return _json(200, self.github_emails)
            if path == "/user/repos":
                return _json(200, self.user_repos)
            parts = path.strip("/").split("/")
            if len(parts) >= 4 and parts[0] == "repos":
                full_name = f"{parts[1]}/{parts[2]}"
                if parts[3] == "contents":
                    return self._contents(full_name, "/".join(parts[4:]))
                if parts[3] == "hooks":
                    return self._hooks(request, full_name, parts[4:])

        if host == "raw.githubusercontent.com":
            parts = path.strip("/").split("/")
            full_name, file_path = f"{parts[0]}/{parts[1]}", "/".join(parts[3:])
            if f"{full_name}:{file_path}" in self.missing_downloads:
                return httpx.Response(404, text="404: Not Found")
            info = self.files.get(full_name, {}).get(file_path)
            if info is None:
                return httpx.Response(404, text="404: Not Found")
            return httpx.Response(200, text=info["content"])

        if host == "github.com" and path == "/login/oauth/access_token":
            return _json(200, self.token_response)
        if host == "oauth2.googleapis.com" and path == "/token":
            return _json(200, self.token_response)
        if host == "www.googleapis.com" and path == "/oauth2/v2/userinfo":
            return _json(200, self.google_user)

        if host == "rag.test":
            if self.rag_status >= 400:
                return _json(self.rag_status, {"detail": "index unavailable"})
            if path == "/rag/index":
                self.index_requests.append(json.loads(request.content))
                return _json(200, {"indexed": True})
            if path == "/rag/delete":
                self.delete_requests.append(parse_qs(request.url.query.decode()))
                return _json(200, {"deleted": True})
            if path == "/rag/query":
                self.query_requests.append(json.loads(request.content))
                return _json(200, self.rag_answer)

        return _json(404, {"message": f"unrouted {request.method} {request.url}"})


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def settings():
    return Settings(
        GITHUB_CLIENT_ID="gh-client",
        GITHUB_CLIENT_SECRET="gh-secret",
        GOOGLE_CLIENT_ID="google-client",
        GOOGLE_CLIENT_SECRET="google-secret",
        JWT_SECRET="test-secret",
        CORS_ORIGIN=FRONTEND,
        RAG_SERVICE_URL=RAG_URL,
        WEBHOOK_RECEIVER_URL=WEBHOOK_URL,
        DATABASE_URL="sqlite://",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def app(settings, upstream):
    return create_app(settings, transport=httpx.MockTransport(upstream.handler))


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db(app, client):
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    return CredentialStore(db)


@pytest.fixture
def register(client):
    """Register a local account through the API; returns the JSON body."""

    def _register(email="user@example.com", password="pw-123456", name="User") -> dict:
        resp = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return resp.json()

    return _register


@pytest.fixture
def auth(register):
    """Registered local user: ``{"user": ..., "headers": {...}}``."""
    data = register()
    return {"user": data["user"], "headers": {"Authorization": f"Bearer {data['token']}"}}


@pytest.fixture
def sample_repo(upstream):
    """o/r with README.md (50 bytes), src/app.js (200 bytes) and bin/app (no extension)."""
    upstream.add_file("o/r", "README.md", "#" * 50)
    upstream.add_file("o/r", "src/app.js", "a" * 200)
    upstream.add_file("o/r", "bin/app", "\x7fELF")
    return {
        "id": 42,
        "name": "r",
        "fullName": "o/r",
        "description": "demo",
        "htmlUrl": "https://github.com/o/r",
        "language": "JavaScript",
        "isPrivate": False,
        "owner": {"login": "o", "id": 5},
    }
