# repo_indexer/models/repository.py
from datetime import datetime

from sqlalchemy import Column, Integer, BigInteger, String, Boolean, DateTime, Float, ForeignKey, JSON, Text
from sqlalchemy.orm import relationship

from repo_indexer.core.db import Base

DEFAULT_INTEGRATION_SETTINGS = {
    "autoCreateIssues": True,
    "assignToUsers": [],
    "issueLabels": ["ai-mentor", "improvement"],
    "issuePriority": "medium",
    "createPRComments": True,
}

DEFAULT_NOTIFICATION_SETTINGS = {
    "emailNotifications": True,
}


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class RepositoryIntegration(Base):
    __tablename__ = "repository_integrations"

    id = Column(Integer, primary_key=True, index=True)
    github_id = Column(BigInteger, unique=True, index=True, nullable=False)

    name = Column(String, nullable=False)
    full_name = Column(String, index=True, nullable=False)    # "owner/repo"
    description = Column(Text, nullable=True)
    html_url = Column(String, nullable=True)
    clone_url = Column(String, nullable=True)
    ssh_url = Column(String, nullable=True)

    language = Column(String, nullable=True)
    size = Column(Integer, nullable=True)
    stargazers_count = Column(Integer, nullable=True)
    forks_count = Column(Integer, nullable=True)
    open_issues_count = Column(Integer, nullable=True)
    is_private = Column(Boolean, nullable=False, default=False)

    owner = Column(JSON, nullable=True)                       # {login, id, avatarUrl, htmlUrl}

    integration_settings = Column(JSON, nullable=False, default=dict)
    notification_settings = Column(JSON, nullable=False, default=dict)

    access_token = Column(String, nullable=False)             # opaque, last writer wins

    status = Column(String, nullable=False, default="active")  # active | inactive | error
    last_synced = Column(DateTime, default=datetime.utcnow, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    analysis_history = relationship(
        "AnalysisRecord",
        back_populates="repository",
        cascade="all, delete-orphan",
        order_by=lambda: AnalysisRecord.timestamp.desc(),
    )

    def to_public_dict(self, include_history: bool = True) -> dict:
        """API representation. The access token is never included."""
        data = {
            "id": self.id,
            "githubId": self.github_id,
            "name": self.name,
            "fullName": self.full_name,
            "description": self.description,
            "htmlUrl": self.html_url,
            "cloneUrl": self.clone_url,
            "sshUrl": self.ssh_url,
            "language": self.language,
            "size": self.size,
            "stargazersCount": self.stargazers_count,
            "forksCount": self.forks_count,
            "openIssuesCount": self.open_issues_count,
            "isPrivate": bool(self.is_private),
            "owner": self.owner,
            "integrationSettings": dict(self.integration_settings or {}),
            "notificationSettings": dict(self.notification_settings or {}),
            "status": self.status,
            "lastSynced": _iso(self.last_synced),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
        if include_history:
            data["analysisHistory"] = [record.to_dict() for record in self.analysis_history]
        return data


class AnalysisRecord(Base):
    __tablename__ = "analysis_records"

    id = Column(Integer, primary_key=True, index=True)
    repository_id = Column(
        Integer, ForeignKey("repository_integrations.id", ondelete="CASCADE"), index=True, nullable=False
    )

    analysis_id = Column(String, nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    overall_score = Column(Float, nullable=True)
    issues_found = Column(Integer, nullable=True)
    issues_created = Column(Integer, nullable=False, default=0)

    repository = relationship("RepositoryIntegration", back_populates="analysis_history")

    def to_dict(self) -> dict:
        return {
            "analysisId": self.analysis_id,
            "timestamp": _iso(self.timestamp),
            "overallScore": self.overall_score,
            "issuesFound": self.issues_found,
            "issuesCreated": self.issues_created,
        }
