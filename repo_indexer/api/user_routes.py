# repo_indexer/api/user_routes.py
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from repo_indexer.api.deps import get_current_user_id, get_store
from repo_indexer.core.errors import ApiError
from repo_indexer.services.credential_store import CredentialStore

router = APIRouter(prefix="/user", tags=["user"])


class SocialIn(BaseModel):
    github: str | None = None
    twitter: str | None = None
    linkedin: str | None = None
    website: str | None = None


class ProfileFieldsIn(BaseModel):
    avatarUrl: str | None = None
    bio: str | None = None
    location: str | None = None
    website: str | None = None
    company: str | None = None
    social: SocialIn | None = None


class ProfileUpdateIn(BaseModel):
    # Email, password and provider records are not editable here
    name: str | None = None
    profile: ProfileFieldsIn | None = None


@router.get("/profile")
def get_profile(user_id: int = Depends(get_current_user_id), store: CredentialStore = Depends(get_store)):
    user = store.get_user(user_id)
    if not user:
        raise ApiError(404, "User not found")
    return {"success": True, "user": user.to_public_dict()}


@router.put("/profile")
def update_profile(
    payload: ProfileUpdateIn,
    user_id: int = Depends(get_current_user_id),
    store: CredentialStore = Depends(get_store),
):
    user = store.get_user(user_id)
    if not user:
        raise ApiError(404, "User not found")
    profile = payload.profile.model_dump(exclude_none=True) if payload.profile else None
    user = store.update_profile(user, name=payload.name, profile=profile)
    return {"success": True, "user": user.to_public_dict()}


@router.get("/github-status")
def github_status(user_id: int = Depends(get_current_user_id), store: CredentialStore = Depends(get_store)):
    user = store.get_user(user_id)
    if not user:
        raise ApiError(404, "User not found")
    github = user.github or {}
    return {
        "success": True,
        "connected": bool(github.get("accessToken")),
        "username": github.get("username"),
        "avatarUrl": github.get("avatarUrl"),
        "repos": user.github_repos,
    }
