# repo_indexer/services/index_forwarder.py
import logging
from dataclasses import dataclass

import httpx

from repo_indexer.services.repo_walker import RepoFile

logger = logging.getLogger(__name__)


class IndexServiceError(RuntimeError):
    pass


@dataclass
class ForwardOutcome:
    attempted: int
    delivered: bool


def flatten_metadata(metadata: dict) -> dict[str, str]:
    """The index accepts string values only."""
    return {str(k): str(v) for k, v in (metadata or {}).items() if v is not None}


class IndexForwarder:
    """Client for the external indexing/retrieval service.

    ``forward`` and ``delete`` never raise: failures are logged and reported
    through their return values.
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def forward(self, repo_id, files: list[RepoFile], metadata: dict) -> ForwardOutcome:
        if not files:
            logger.info("No files to index for repo %s, skipping", repo_id)
            return ForwardOutcome(attempted=0, delivered=False)

        payload = {
            "repoId": str(repo_id),
            "files": [f.to_dict() for f in files],
            "metadata": flatten_metadata(metadata),
        }
        try:
            resp = await self.client.post(f"{self.base_url}/rag/index", json=payload)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Error sending %d file(s) for repo %s to index service: %s", len(files), repo_id, e)
            return ForwardOutcome(attempted=len(files), delivered=False)

        logger.info("Sent %d file(s) for repo %s to index service", len(files), repo_id)
        return ForwardOutcome(attempted=len(files), delivered=True)

    async def delete(self, repo_id) -> bool:
        try:
            resp = await self.client.delete(f"{self.base_url}/rag/delete", params={"repoId": str(repo_id)})
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Error deleting index entries for repo %s: %s", repo_id, e)
            return False
        logger.info("Deleted index entries for repo %s", repo_id)
        return True

    async def query(self, files: list[RepoFile], prompt: str, metadata: dict | None = None) -> dict:
        payload = {
            "files": [f.to_dict() for f in files],
            "prompt": prompt,
            "metadata": flatten_metadata(metadata or {}),
        }
        try:
            resp = await self.client.post(f"{self.base_url}/rag/query", json=payload)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise IndexServiceError(f"Index service error: {e.response.status_code} - {e.response.text}") from e
        except httpx.HTTPError as e:
            raise IndexServiceError(f"Index service unreachable: {e}") from e
        return resp.json()
