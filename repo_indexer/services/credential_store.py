# repo_indexer/services/credential_store.py
"""Persistence for users and repository integrations.

``RepositoryIntegration`` is the canonical owner of settings and tokens. The
``user.github["repos"]`` list is only ever written by projecting a canonical
row onto it.
"""
import logging
import time
from datetime import datetime

from sqlalchemy.orm import Session

from repo_indexer.models import (
    AnalysisRecord,
    RepositoryIntegration,
    User,
    DEFAULT_INTEGRATION_SETTINGS,
    DEFAULT_NOTIFICATION_SETTINGS,
)
from repo_indexer.oauth_client import OAuthIdentity

logger = logging.getLogger(__name__)

# camelCase summary key -> column
SUMMARY_COLUMNS = {
    "name": "name",
    "fullName": "full_name",
    "description": "description",
    "htmlUrl": "html_url",
    "cloneUrl": "clone_url",
    "sshUrl": "ssh_url",
    "language": "language",
    "size": "size",
    "stargazersCount": "stargazers_count",
    "forksCount": "forks_count",
    "openIssuesCount": "open_issues_count",
    "isPrivate": "is_private",
    "owner": "owner",
}


class CredentialStore:
    def __init__(self, db: Session):
        self.db = db

    # ----- Users -----

    def get_user(self, user_id: int) -> User | None:
        return self.db.get(User, user_id)

    def get_user_by_email(self, email: str) -> User | None:
        return self.db.query(User).filter(User.email == email).first()

    def create_local_user(self, name: str | None, email: str, password_hash: str) -> User:
        user = User(name=name, email=email, password_hash=password_hash, provider="local")
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def upsert_oauth_user(self, identity: OAuthIdentity, access_token: str) -> User:
        """Find-or-create by email; the provider tag and its sub-record are replaced."""
        sub_record = {
            "accessToken": access_token,
            "username": identity.username,
            "avatarUrl": identity.avatar_url,
        }
        user = self.get_user_by_email(identity.email)
        if user is None:
            user = User(name=identity.name or identity.username, email=identity.email)
            self.db.add(user)
        user.provider = identity.provider
        if identity.provider == "github":
            user.github = sub_record
        else:
            user.google = sub_record
        self.db.commit()
        self.db.refresh(user)
        return user

    def set_github_connection(self, user: User, identity: OAuthIdentity, access_token: str, repos: list[dict]) -> User:
        """Store the connected account and its repository list.

        Entries already projected from an integration row are kept as they are.
        """
        projected = {r.get("id"): r for r in user.github_repos if r.get("integrationId") is not None}
        repos = [projected.pop(r.get("id"), r) for r in repos] + list(projected.values())
        user.github = {
            "accessToken": access_token,
            "username": identity.username,
            "avatarUrl": identity.avatar_url,
            "profileUrl": identity.profile_url,
            "bio": identity.bio,
            "location": identity.location,
            "repos": repos,
        }
        self.db.commit()
        return user

    def update_profile(self, user: User, name: str | None = None, profile: dict | None = None) -> User:
        if name is not None:
            user.name = name
        if profile is not None:
            merged = dict(user.profile or {})
            merged.update(profile)
            user.profile = merged
        self.db.commit()
        self.db.refresh(user)
        return user

    # ----- Repository integrations -----

    def get_integration(self, integration_id: int) -> RepositoryIntegration | None:
        return self.db.get(RepositoryIntegration, integration_id)

    def get_integration_by_github_id(self, github_id: int) -> RepositoryIntegration | None:
        return self.db.query(RepositoryIntegration).filter(RepositoryIntegration.github_id == github_id).first()

    def upsert_integration(
        self,
        summary: dict,
        access_token: str,
        integration_settings: dict | None = None,
        notification_settings: dict | None = None,
    ) -> tuple[RepositoryIntegration, bool]:
        """Create or update in place by external id. Returns ``(row, created)``."""
        integration = self.get_integration_by_github_id(summary["id"])
        created = integration is None
        if created:
            integration = RepositoryIntegration(
                github_id=summary["id"],
                integration_settings={**DEFAULT_INTEGRATION_SETTINGS, **(integration_settings or {})},
                notification_settings={**DEFAULT_NOTIFICATION_SETTINGS, **(notification_settings or {})},
            )
            self.db.add(integration)
        else:
            # Shallow merge: new keys overwrite, unspecified keys are kept
            merged = dict(integration.integration_settings or {})
            merged.update(integration_settings or {})
            integration.integration_settings = merged
            if notification_settings:
                merged = dict(integration.notification_settings or {})
                merged.update(notification_settings)
                integration.notification_settings = merged
        self._apply_summary(integration, summary)

        integration.access_token = access_token
        integration.status = "active"
        integration.last_synced = datetime.utcnow()
        self.db.commit()
        self.db.refresh(integration)
        return integration, created

    def _apply_summary(self, integration: RepositoryIntegration, summary: dict):
        for key, column in SUMMARY_COLUMNS.items():
            if key in summary and summary[key] is not None:
                setattr(integration, column, summary[key])
        if not integration.name and integration.full_name:
            integration.name = integration.full_name.split("/")[-1]
        if integration.is_private is None:
            integration.is_private = False

    def reactivate_integration(
        self,
        integration: RepositoryIntegration,
        access_token: str,
        integration_settings: dict | None = None,
        notification_settings: dict | None = None,
    ) -> RepositoryIntegration:
        """Bring an inactive row back; provided settings replace the stored ones."""
        integration.status = "active"
        integration.access_token = access_token
        if integration_settings:
            integration.integration_settings = dict(integration_settings)
        if notification_settings:
            integration.notification_settings = dict(notification_settings)
        integration.last_synced = datetime.utcnow()
        self.db.commit()
        self.db.refresh(integration)
        return integration

    def merge_integration_settings(self, integration: RepositoryIntegration, settings: dict) -> RepositoryIntegration:
        merged = dict(integration.integration_settings or {})
        merged.update(settings or {})
        integration.integration_settings = merged
        self.db.commit()
        self.db.refresh(integration)
        return integration

    def set_status(self, integration: RepositoryIntegration, status: str) -> RepositoryIntegration:
        integration.status = status
        self.db.commit()
        return integration

    def touch_synced(self, integration: RepositoryIntegration) -> RepositoryIntegration:
        integration.last_synced = datetime.utcnow()
        self.db.commit()
        self.db.refresh(integration)
        return integration

    def add_analysis_record(self, integration: RepositoryIntegration, data: dict) -> AnalysisRecord:
        record = AnalysisRecord(
            repository_id=integration.id,
            analysis_id=str(data.get("analysisId") or int(time.time() * 1000)),
            overall_score=data.get("overallScore"),
            issues_found=data.get("issuesFound"),
            issues_created=data.get("issuesCreated") or 0,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(integration)
        return record

    def delete_integration(self, integration: RepositoryIntegration):
        self.db.delete(integration)
        self.db.commit()

    # ----- Shadow list on User.github.repos -----

    def project_shadow(self, user: User, integration: RepositoryIntegration, summary: dict | None = None):
        """Replace-by-id the user's shadow entry with a projection of the canonical row."""
        entry = dict(summary or {})
        entry.update(
            {
                "id": integration.github_id,
                "integrationId": integration.id,
                "name": integration.name,
                "fullName": integration.full_name,
                "description": integration.description,
                "htmlUrl": integration.html_url,
                "language": integration.language,
                "stargazersCount": integration.stargazers_count,
                "forksCount": integration.forks_count,
                "openIssuesCount": integration.open_issues_count,
                "isPrivate": bool(integration.is_private),
                "owner": integration.owner,
                "integrationSettings": dict(integration.integration_settings or {}),
                "notificationSettings": dict(integration.notification_settings or {}),
                "status": integration.status,
                "lastSynced": integration.last_synced.isoformat() if integration.last_synced else None,
            }
        )
        github = dict(user.github or {})
        github["accessToken"] = integration.access_token
        github["repos"] = [r for r in github.get("repos") or [] if r.get("id") != integration.github_id]
        github["repos"].append(entry)
        user.github = github
        self.db.commit()

    def remove_shadow(self, user: User, integration_id: int | None = None, github_id: int | None = None):
        github = dict(user.github or {})
        repos = github.get("repos") or []
        kept = [
            r
            for r in repos
            if not (
                (integration_id is not None and str(r.get("integrationId")) == str(integration_id))
                or (github_id is not None and r.get("id") == github_id)
            )
        ]
        if len(kept) != len(repos):
            github["repos"] = kept
            user.github = github
            self.db.commit()
