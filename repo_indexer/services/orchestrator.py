# repo_indexer/services/orchestrator.py
"""Integration workflows: save, webhook event, delete, connect, sync, query.

The database write is the durability boundary of every workflow. Webhook and
index calls run afterwards as best-effort steps and never undo it.
"""
import logging

from repo_indexer.core.config import Settings
from repo_indexer.models import RepositoryIntegration
from repo_indexer.services.credential_store import CredentialStore
from repo_indexer.services.github_token_service import get_token_for_repository
from repo_indexer.services.index_forwarder import IndexForwarder
from repo_indexer.services.repo_walker import RepositoryWalker
from repo_indexer.services.steps import SideEffectReport, StepResult
from repo_indexer.services.webhook_events import WebhookEventKind, parse_webhook_event
from repo_indexer.services.webhook_manager import WebhookManager

logger = logging.getLogger(__name__)


class IntegrationInputError(ValueError):
    """Required input is missing; raised before any side effect."""


class IntegrationNotFound(LookupError):
    pass


class RepositoryAlreadyConnected(RuntimeError):
    def __init__(self, integration: RepositoryIntegration):
        super().__init__("Repository already connected")
        self.integration = integration


def _index_metadata(github_id, name) -> dict:
    return {"githubId": github_id, "name": name}


def _mark_delivery(step: StepResult, what: str):
    # Forwarder calls report failure through their return value
    if step.ok and step.value is False:
        step.ok = False
        step.error = f"{what} was not accepted by the index service"


class IntegrationOrchestrator:
    def __init__(
        self,
        store: CredentialStore,
        settings: Settings,
        webhooks: WebhookManager,
        walker: RepositoryWalker,
        forwarder: IndexForwarder,
    ):
        self.store = store
        self.settings = settings
        self.webhooks = webhooks
        self.walker = walker
        self.forwarder = forwarder

    # ----- Save integration -----

    async def save_integration(
        self,
        user_id: int,
        repository: dict | None,
        access_token: str | None,
        integration_settings: dict | None = None,
        notification_settings: dict | None = None,
    ) -> dict:
        if not repository or repository.get("id") is None or not access_token:
            raise IntegrationInputError("Repository data and access token are required")
        if not repository.get("fullName"):
            raise IntegrationInputError("Repository fullName is required")

        integration, created = self.store.upsert_integration(
            repository, access_token, integration_settings, notification_settings
        )
        user = self.store.get_user(user_id)
        if user:
            self.store.project_shadow(user, integration, repository)

        report = SideEffectReport()
        await report.run(
            "register_webhook",
            self.webhooks.register(integration.full_name, access_token, self.settings.WEBHOOK_RECEIVER_URL),
        )
        indexed = await self._index_repository(integration, access_token, report)

        for step in report.failed:
            logger.warning("save-integration %s: %s failed: %s", integration.full_name, step.name, step.error)

        return {
            "success": True,
            "message": (
                "Repository integration created successfully"
                if created
                else "Repository integration updated successfully"
            ),
            "repository": integration.to_public_dict(),
            "ragIndexed": indexed,
            "steps": report.to_list(),
        }

    async def _index_repository(self, integration: RepositoryIntegration, token: str, report: SideEffectReport) -> int:
        """Full scan and forward. Returns the number of files sent to the index."""
        walk = await report.run("walk_repository", self.walker.scan(integration.full_name, token))
        files = walk.value.files if walk.ok else []
        forward = await report.run(
            "forward_to_index",
            self.forwarder.forward(integration.id, files, _index_metadata(integration.github_id, integration.name)),
        )
        if not forward.ok:
            return 0
        if files and not forward.value.delivered:
            forward.ok = False
            forward.error = "index service did not accept the files"
        return forward.value.attempted

    # ----- Webhook events -----

    async def handle_webhook_event(self, payload, event_name: str | None = None) -> dict:
        event = parse_webhook_event(payload, event_name)
        logger.info(
            "Webhook event %s for %s (%d changed path(s))",
            event.kind.value,
            event.repository_full_name,
            len(event.changed_paths),
        )

        if event.kind is WebhookEventKind.PULL_REQUEST:
            # TODO: index the files changed by the pull request (GET /pulls/{number}/files)
            return {"success": True, "message": "PR event received"}
        if event.kind is not WebhookEventKind.PUSH:
            return {"success": True, "message": "Event ignored (not push/PR)"}

        if not event.repository_full_name or not event.changed_paths:
            return {"success": True, "indexedFiles": 0}

        token, integration = get_token_for_repository(
            self.store, event.repository_id, self.settings.GITHUB_ACCESS_TOKEN
        )
        if integration is not None and integration.status != "active":
            logger.info("Ignoring push for %s: integration is %s", event.repository_full_name, integration.status)
            return {"success": True, "indexedFiles": 0}
        if not token:
            logger.warning("No access token for %s, push not indexed", event.repository_full_name)
            return {"success": True, "indexedFiles": 0}

        walk = await self.walker.fetch_paths(event.repository_full_name, token, event.changed_paths)
        repo_id = integration.id if integration is not None else event.repository_id
        await self.forwarder.forward(repo_id, walk.files, _index_metadata(event.repository_id, event.repository_name))
        if integration is not None:
            self.store.touch_synced(integration)
        return {"success": True, "indexedFiles": len(walk.files)}

    # ----- Delete -----

    async def delete_integration(self, user_id: int, integration_id: int) -> dict:
        integration = self.store.get_integration(integration_id)
        full_name = integration.full_name if integration else None
        token = integration.access_token if integration else None
        github_id = integration.github_id if integration else None

        if integration is not None:
            self.store.delete_integration(integration)
        user = self.store.get_user(user_id)
        if user:
            self.store.remove_shadow(user, integration_id=integration_id, github_id=github_id)

        report = SideEffectReport()
        if full_name and token:
            await report.run(
                "remove_webhook", self.webhooks.remove(full_name, token, self.settings.WEBHOOK_RECEIVER_URL)
            )
        else:
            report.skip("remove_webhook", "no stored repository name or token")
        if integration is not None:
            step = await report.run("delete_index", self.forwarder.delete(integration_id))
            _mark_delivery(step, "index deletion")

        for step in report.failed:
            logger.warning("delete %s: %s failed: %s", integration_id, step.name, step.error)
        return {"success": True, "steps": report.to_list()}

    # ----- Connect / sync / query -----

    async def connect_repository(
        self,
        user_id: int,
        repository: dict,
        access_token: str,
        integration_settings: dict | None = None,
        notification_settings: dict | None = None,
    ) -> tuple[RepositoryIntegration, bool]:
        """Persist a connection without indexing. Returns ``(row, created)``."""
        if repository.get("id") is None or not repository.get("fullName") or not access_token:
            raise IntegrationInputError("githubId, fullName and githubToken are required")

        existing = self.store.get_integration_by_github_id(repository["id"])
        if existing is not None:
            if existing.status == "active":
                raise RepositoryAlreadyConnected(existing)
            integration = self.store.reactivate_integration(
                existing, access_token, integration_settings, notification_settings
            )
            created = False
        else:
            integration, created = self.store.upsert_integration(
                repository, access_token, integration_settings, notification_settings
            )
        user = self.store.get_user(user_id)
        if user:
            self.store.project_shadow(user, integration, repository)
        return integration, created

    async def update_settings(self, user_id: int, integration_id: int, integration_settings: dict) -> RepositoryIntegration:
        integration = self._require(integration_id)
        self.store.merge_integration_settings(integration, integration_settings)
        self._reproject(user_id, integration)
        return integration

    async def disconnect(self, user_id: int, integration_id: int) -> RepositoryIntegration:
        """Soft delete: the row stays, status becomes inactive."""
        integration = self._require(integration_id)
        self.store.set_status(integration, "inactive")
        self._reproject(user_id, integration)
        return integration

    async def sync_integration(self, user_id: int, integration_id: int) -> dict:
        integration = self._require(integration_id)
        report = SideEffectReport()
        indexed = await self._index_repository(integration, integration.access_token, report)
        self.store.touch_synced(integration)
        self._reproject(user_id, integration)
        return {
            "success": True,
            "message": "Repository synced successfully",
            "repository": integration.to_public_dict(),
            "ragIndexed": indexed,
            "steps": report.to_list(),
        }

    async def query(self, integration_id: int, prompt: str) -> dict:
        integration = self._require(integration_id)
        walk = await self.walker.scan(integration.full_name, integration.access_token)
        return await self.forwarder.query(walk.files, prompt, {"repoId": integration.id})

    def _require(self, integration_id: int) -> RepositoryIntegration:
        integration = self.store.get_integration(integration_id)
        if integration is None:
            raise IntegrationNotFound(f"Repository {integration_id} not found")
        return integration

    def _reproject(self, user_id: int, integration: RepositoryIntegration):
        user = self.store.get_user(user_id)
        if not user:
            return
        if any(r.get("id") == integration.github_id for r in user.github_repos):
            self.store.project_shadow(user, integration)
