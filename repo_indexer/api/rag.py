# repo_indexer/api/rag.py
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from repo_indexer.api.deps import get_current_user_id, get_orchestrator
from repo_indexer.core.errors import ApiError
from repo_indexer.services.index_forwarder import IndexServiceError
from repo_indexer.services.orchestrator import IntegrationNotFound, IntegrationOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rag", tags=["rag"])


class QueryIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    repoId: int | None = None
    prompt: str | None = None


@router.post("/query")
async def query(
    payload: QueryIn,
    user_id: int = Depends(get_current_user_id),
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    if payload.repoId is None or not payload.prompt:
        raise ApiError(400, "repoId and prompt required")
    try:
        answer = await orchestrator.query(payload.repoId, payload.prompt)
    except IntegrationNotFound:
        raise ApiError(404, "Repository not found")
    except IndexServiceError as e:
        logger.error("RAG query error: %s", e)
        raise ApiError(500, "Failed to query repository", str(e))
    return {"success": True, "rag": answer}
