# repo_indexer/services/repo_walker.py
"""Collect indexable files from a GitHub repository.

Two modes:
- full scan: walk the contents tree from the root, keeping files whose
  extension is in ``ALLOWED_EXTENSIONS`` and whose size is at most
  ``MAX_FILE_SIZE``;
- targeted: fetch an explicit list of paths (from a push event) directly.

A failed file or directory is logged and recorded, and the walk goes on. The
order of ``WalkResult.files`` is not meaningful.
"""
import asyncio
import logging
from dataclasses import dataclass, field

import httpx

from repo_indexer.github_client import GitHubClient, GitHubAPIError, GITHUB_API_URL

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset(
    {
        "js", "ts", "py", "md", "jsx", "tsx", "json", "txt", "java", "go", "rb",
        "c", "cpp", "cs", "html", "css", "yml", "yaml", "xml", "sh", "bat", "dockerfile",
    }
)
MAX_FILE_SIZE = 1024 * 1024  # 1 MiB


@dataclass
class RepoFile:
    filename: str
    content: str

    def to_dict(self) -> dict:
        return {"filename": self.filename, "content": self.content}


@dataclass
class WalkResult:
    files: list[RepoFile] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def __len__(self):
        return len(self.files)


def file_extension(name: str) -> str:
    """Lower-cased suffix after the last dot, or the whole name when there is none."""
    base, dot, ext = name.rpartition(".")
    if dot and ext:
        return ext.lower()
    return name.lower()


def is_indexable(entry: dict) -> bool:
    size = entry.get("size") or 0
    return file_extension(entry.get("name") or "") in ALLOWED_EXTENSIONS and size <= MAX_FILE_SIZE


def join_path(parent: str, name: str) -> str:
    return f"{parent}/{name}" if parent else name


class RepositoryWalker:
    def __init__(self, client: httpx.AsyncClient | None = None, base_url: str = GITHUB_API_URL, concurrency: int = 8):
        self.client = client
        self.base_url = base_url
        self.concurrency = max(1, concurrency)

    def _github(self, token: str) -> GitHubClient:
        return GitHubClient(token, client=self.client, base_url=self.base_url)

    async def walk(self, full_name: str, token: str, paths: list[str] | None = None) -> WalkResult:
        """Full scan when ``paths`` is None, otherwise targeted fetch of ``paths``."""
        if paths is None:
            return await self.scan(full_name, token)
        return await self.fetch_paths(full_name, token, paths)

    async def scan(self, full_name: str, token: str) -> WalkResult:
        github = self._github(token)
        result = WalkResult()
        semaphore = asyncio.Semaphore(self.concurrency)
        await self._walk_directory(github, full_name, "", result, semaphore)
        logger.info(
            "Scanned %s: %d file(s) collected, %d error(s)", full_name, len(result.files), len(result.errors)
        )
        return result

    async def _walk_directory(self, github, full_name, path, result, semaphore):
        try:
            async with semaphore:
                entries = await github.list_directory(full_name, path)
        except GitHubAPIError as e:
            logger.warning("Error fetching contents for path '%s' in %s: %s", path, full_name, e)
            result.errors.append(f"{path or '/'}: {e}")
            return

        tasks = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            name = entry.get("name") or ""
            child = join_path(path, name)
            if entry.get("type") == "file":
                if is_indexable(entry) and entry.get("download_url"):
                    tasks.append(self._fetch_entry(github, child, entry["download_url"], result, semaphore))
            elif entry.get("type") == "dir":
                tasks.append(self._walk_directory(github, full_name, child, result, semaphore))
        if tasks:
            await asyncio.gather(*tasks)

    async def _fetch_entry(self, github, filename, download_url, result, semaphore):
        try:
            async with semaphore:
                content = await github.fetch_file_content(download_url)
        except GitHubAPIError as e:
            logger.warning("Error fetching file %s: %s", filename, e)
            result.errors.append(f"{filename}: {e}")
            return
        result.files.append(RepoFile(filename=filename, content=content))

    async def fetch_paths(self, full_name: str, token: str, paths: list[str]) -> WalkResult:
        github = self._github(token)
        result = WalkResult()
        semaphore = asyncio.Semaphore(self.concurrency)
        unique = list(dict.fromkeys(p for p in paths if p))
        await asyncio.gather(*(self._fetch_path(github, full_name, p, result, semaphore) for p in unique))
        logger.info(
            "Fetched %d of %d changed path(s) from %s", len(result.files), len(unique), full_name
        )
        return result

    async def _fetch_path(self, github, full_name, path, result, semaphore):
        try:
            async with semaphore:
                entry = await github.get_content(full_name, path)
        except GitHubAPIError as e:
            # Deleted or renamed since the push: 404
            logger.warning("Error fetching file %s: %s", path, e)
            result.errors.append(f"{path}: {e}")
            return
        if not isinstance(entry, dict) or entry.get("type") != "file" or not entry.get("download_url"):
            return
        await self._fetch_entry(github, path, entry["download_url"], result, semaphore)
