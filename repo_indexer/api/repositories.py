# repo_indexer/api/repositories.py
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from repo_indexer.api.deps import get_current_user_id, get_orchestrator, get_store
from repo_indexer.api.github_routes import CamelModel, OwnerIn
from repo_indexer.core.errors import ApiError
from repo_indexer.services.credential_store import CredentialStore
from repo_indexer.services.orchestrator import (
    IntegrationInputError,
    IntegrationNotFound,
    IntegrationOrchestrator,
    RepositoryAlreadyConnected,
)

router = APIRouter(prefix="/repositories", tags=["repositories"])


# ----- Pydantic schemas -----

class ConnectIn(CamelModel):
    github_id: int | None = None
    name: str | None = None
    full_name: str | None = None
    description: str | None = None
    html_url: str | None = None
    language: str | None = None
    is_private: bool | None = None
    owner: OwnerIn | None = None
    github_token: str | None = None
    integration_settings: dict[str, Any] | None = None
    notification_settings: dict[str, Any] | None = None


class SettingsIn(CamelModel):
    integration_settings: dict[str, Any] = {}


class AnalysisIn(CamelModel):
    analysis_id: str | None = None
    overall_score: float | None = None
    issues_found: int | None = None
    issues_created: int | None = None


def _get_or_404(store: CredentialStore, repository_id: int):
    repository = store.get_integration(repository_id)
    if not repository:
        raise ApiError(404, "Repository not found")
    return repository


# ----- Routes -----

@router.get("")
def list_connected(user_id: int = Depends(get_current_user_id), store: CredentialStore = Depends(get_store)):
    user = store.get_user(user_id)
    if not user:
        raise ApiError(401, "User not found")
    repositories = user.github_repos
    return {"success": True, "repositories": repositories, "count": len(repositories)}


@router.post("")
async def connect_repository(
    payload: ConnectIn,
    user_id: int = Depends(get_current_user_id),
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    summary = {
        "id": payload.github_id,
        "name": payload.name,
        "fullName": payload.full_name,
        "description": payload.description or "",
        "htmlUrl": payload.html_url,
        "language": payload.language or "Unknown",
        "isPrivate": bool(payload.is_private),
        "owner": payload.owner.model_dump(by_alias=True) if payload.owner else None,
    }
    try:
        repository, created = await orchestrator.connect_repository(
            user_id, summary, payload.github_token, payload.integration_settings, payload.notification_settings
        )
    except IntegrationInputError as e:
        raise ApiError(400, str(e))
    except RepositoryAlreadyConnected as e:
        return JSONResponse(
            status_code=400,
            content={"error": "Repository already connected", "repository": e.integration.to_public_dict()},
        )

    if not created:
        return {
            "success": True,
            "message": "Repository reconnected successfully",
            "repository": repository.to_public_dict(),
        }
    return JSONResponse(
        status_code=201,
        content={
            "success": True,
            "message": "Repository connected successfully",
            "repository": repository.to_public_dict(),
        },
    )


@router.get("/github/{github_id}")
def get_by_github_id(
    github_id: int, user_id: int = Depends(get_current_user_id), store: CredentialStore = Depends(get_store)
):
    repository = store.get_integration_by_github_id(github_id)
    if not repository:
        raise ApiError(404, "Repository not found")
    return {"success": True, "repository": repository.to_public_dict()}


@router.get("/{repository_id}")
def get_repository(
    repository_id: int, user_id: int = Depends(get_current_user_id), store: CredentialStore = Depends(get_store)
):
    return {"success": True, "repository": _get_or_404(store, repository_id).to_public_dict()}


@router.put("/{repository_id}/settings")
async def update_settings(
    repository_id: int,
    payload: SettingsIn,
    user_id: int = Depends(get_current_user_id),
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    try:
        repository = await orchestrator.update_settings(user_id, repository_id, payload.integration_settings)
    except IntegrationNotFound:
        raise ApiError(404, "Repository not found")
    return {
        "success": True,
        "message": "Repository settings updated successfully",
        "repository": repository.to_public_dict(),
    }


@router.post("/{repository_id}/analysis")
def add_analysis(
    repository_id: int,
    payload: AnalysisIn,
    user_id: int = Depends(get_current_user_id),
    store: CredentialStore = Depends(get_store),
):
    repository = _get_or_404(store, repository_id)
    store.add_analysis_record(repository, payload.model_dump(by_alias=True))
    return {
        "success": True,
        "message": "Analysis record added successfully",
        "repository": repository.to_public_dict(),
    }


@router.get("/{repository_id}/analysis-history")
def analysis_history(
    repository_id: int, user_id: int = Depends(get_current_user_id), store: CredentialStore = Depends(get_store)
):
    repository = _get_or_404(store, repository_id)
    history = sorted(
        (record.to_dict() for record in repository.analysis_history),
        key=lambda r: r["timestamp"] or "",
        reverse=True,
    )
    return {
        "success": True,
        "repository": {"name": repository.name, "fullName": repository.full_name, "analysisHistory": history},
    }


@router.delete("/{repository_id}")
async def disconnect_repository(
    repository_id: int,
    user_id: int = Depends(get_current_user_id),
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    try:
        await orchestrator.disconnect(user_id, repository_id)
    except IntegrationNotFound:
        raise ApiError(404, "Repository not found")
    return {"success": True, "message": "Repository disconnected successfully"}


@router.post("/{repository_id}/sync")
async def sync_repository(
    repository_id: int,
    user_id: int = Depends(get_current_user_id),
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    try:
        return await orchestrator.sync_integration(user_id, repository_id)
    except IntegrationNotFound:
        raise ApiError(404, "Repository not found")
