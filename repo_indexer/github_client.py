# repo_indexer/github_client.py
import httpx
from typing import Any
from urllib.parse import quote

GITHUB_API_URL = "https://api.github.com"


class GitHubAPIError(RuntimeError):
    """A GitHub call failed; carries the provider's status and body."""

    def __init__(self, action: str, status_code: int | None, body: Any = None):
        self.action = action
        self.status_code = status_code
        self.body = body
        super().__init__(f"GitHub API error {action}: {status_code} - {body}")

    @property
    def provider_message(self) -> str:
        if isinstance(self.body, dict) and self.body.get("message"):
            return str(self.body["message"])
        return str(self.body or self)


def repo_summary(repo: dict) -> dict:
    """Map a GitHub repository payload to the camelCase summary the API exposes."""
    owner = repo.get("owner") or {}
    return {
        "id": repo.get("id"),
        "name": repo.get("name"),
        "fullName": repo.get("full_name"),
        "description": repo.get("description"),
        "htmlUrl": repo.get("html_url"),
        "cloneUrl": repo.get("clone_url"),
        "sshUrl": repo.get("ssh_url"),
        "language": repo.get("language"),
        "size": repo.get("size"),
        "stargazersCount": repo.get("stargazers_count"),
        "forksCount": repo.get("forks_count"),
        "openIssuesCount": repo.get("open_issues_count"),
        "isPrivate": repo.get("private"),
        "owner": {
            "login": owner.get("login"),
            "id": owner.get("id"),
            "avatarUrl": owner.get("avatar_url"),
            "htmlUrl": owner.get("html_url"),
        },
    }


class GitHubClient:
    def __init__(self, access_token: str, client: httpx.AsyncClient | None = None, base_url: str = GITHUB_API_URL):
        self.base_url = base_url.rstrip("/")
        # If caller passed an AsyncClient, reuse it; otherwise use ad-hoc clients.
        self.client = client
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/vnd.github+json",
        }

    async def _request(self, method: str, url: str, action: str, headers: dict | None = None, **kwargs) -> httpx.Response:
        """Internal helper that uses either the provided client or a temporary one."""
        headers = self.headers if headers is None else headers
        try:
            if self.client:
                resp = await self.client.request(method, url, headers=headers, **kwargs)
            else:
                async with httpx.AsyncClient() as client:
                    resp = await client.request(method, url, headers=headers, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            resp = e.response
            try:
                err = resp.json()
            except ValueError:
                err = resp.text
            raise GitHubAPIError(action, resp.status_code, err) from e
        except httpx.HTTPError as e:
            raise GitHubAPIError(action, None, str(e)) from e
        return resp

    async def _request_json(self, method: str, url: str, action: str, **kwargs):
        resp = await self._request(method, url, action, **kwargs)
        try:
            return resp.json()
        except ValueError as e:
            # 2xx with a non-JSON body
            raise GitHubAPIError(action, resp.status_code, "response is not valid JSON") from e

    def _repo_url(self, full_name: str, suffix: str = "") -> str:
        return f"{self.base_url}/repos/{full_name}{suffix}"

    # ----- Identity -----

    async def get_user(self) -> dict:
        return await self._request_json("GET", f"{self.base_url}/user", "fetching user")

    async def get_user_emails(self) -> list[dict]:
        return await self._request_json("GET", f"{self.base_url}/user/emails", "fetching user emails")

    # ----- Repositories -----

    async def list_repositories(self) -> list[dict]:
        repos = await self._request_json(
            "GET",
            f"{self.base_url}/user/repos",
            "listing repositories",
            params={"per_page": 100, "sort": "updated", "type": "all"},
        )
        return [repo_summary(r) for r in repos if isinstance(r, dict)]

    async def list_directory(self, full_name: str, path: str = "") -> list[dict]:
        """List one directory of the default branch through the contents API."""
        suffix = f"/contents/{quote(path)}" if path else "/contents"
        action = f"listing {full_name}/{path}"
        data = await self._request_json("GET", self._repo_url(full_name, suffix), action)
        if not isinstance(data, list):
            # The contents API returns an object when the path is a file
            raise GitHubAPIError(action, 200, "path is not a directory")
        return data

    async def get_content(self, full_name: str, path: str) -> dict | list:
        return await self._request_json(
            "GET", self._repo_url(full_name, f"/contents/{quote(path)}"), f"fetching {full_name}/{path}"
        )

    async def fetch_file_content(self, download_url: str) -> str:
        """Download raw file text from a contents entry's ``download_url``."""
        resp = await self._request("GET", download_url, f"downloading {download_url}")
        return resp.text

    # ----- Webhooks -----

    async def list_webhooks(self, full_name: str) -> list[dict]:
        return await self._request_json(
            "GET", self._repo_url(full_name, "/hooks"), f"listing webhooks for {full_name}"
        )

    async def create_webhook(self, full_name: str, config: dict) -> dict:
        return await self._request_json(
            "POST", self._repo_url(full_name, "/hooks"), f"creating webhook for {full_name}", json=config
        )

    async def delete_webhook(self, full_name: str, hook_id: int):
        await self._request(
            "DELETE", self._repo_url(full_name, f"/hooks/{hook_id}"), f"deleting webhook {hook_id} for {full_name}"
        )
