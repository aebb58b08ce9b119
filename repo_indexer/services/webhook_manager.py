# repo_indexer/services/webhook_manager.py
import logging

import httpx

from repo_indexer.github_client import GitHubClient, GITHUB_API_URL

logger = logging.getLogger(__name__)

WEBHOOK_EVENTS = ["push", "pull_request"]


def webhook_config(callback_url: str) -> dict:
    return {
        "name": "web",
        "active": True,
        "events": list(WEBHOOK_EVENTS),
        "config": {
            "url": callback_url,
            "content_type": "json",
            "insecure_ssl": "0",
        },
    }


def _matches(hook: dict, callback_url: str) -> bool:
    return (hook.get("config") or {}).get("url") == callback_url


class WebhookManager:
    """One webhook per repository, identified by its destination URL.

    Errors from GitHub propagate as ``GitHubAPIError``; callers run these
    calls as best-effort steps.
    """

    def __init__(self, client: httpx.AsyncClient | None = None, base_url: str = GITHUB_API_URL, skip_existing: bool = True):
        self.client = client
        self.base_url = base_url
        self.skip_existing = skip_existing

    def _github(self, token: str) -> GitHubClient:
        return GitHubClient(token, client=self.client, base_url=self.base_url)

    async def register(self, full_name: str, token: str, callback_url: str) -> dict:
        github = self._github(token)
        if self.skip_existing:
            for hook in await github.list_webhooks(full_name):
                if _matches(hook, callback_url):
                    logger.info("Webhook %s already registered on %s", hook.get("id"), full_name)
                    return hook
        hook = await github.create_webhook(full_name, webhook_config(callback_url))
        logger.info("Registered webhook %s on %s", hook.get("id"), full_name)
        return hook

    async def remove(self, full_name: str, token: str, callback_url: str) -> int:
        """Delete every hook pointing at ``callback_url``; returns how many were removed."""
        github = self._github(token)
        removed = 0
        for hook in await github.list_webhooks(full_name):
            if _matches(hook, callback_url):
                await github.delete_webhook(full_name, hook["id"])
                removed += 1
        logger.info("Removed %d webhook(s) from %s", removed, full_name)
        return removed
