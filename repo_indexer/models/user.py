# repo_indexer/models/user.py
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, JSON

from repo_indexer.core.db import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=True)               # bcrypt, local accounts only
    provider = Column(String, nullable=False, default="local")  # local | github | google

    # Embedded provider sub-records, replaced wholesale on each OAuth login.
    # github: {accessToken, username, avatarUrl, profileUrl, bio, location, repos: [...]}
    github = Column(JSON, nullable=True)
    # google: {accessToken, username, avatarUrl}
    google = Column(JSON, nullable=True)
    # profile: {avatarUrl, bio, location, website, company, social: {...}}
    profile = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def github_repos(self) -> list[dict]:
        return list((self.github or {}).get("repos") or [])

    def to_public_dict(self) -> dict:
        """Profile view: no password hash."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "provider": self.provider,
            "github": self.github,
            "google": self.google,
            "profile": self.profile or {},
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
