"""Unit tests for the repository walker.

Covers the extension allow-list, the size ceiling, recursion through
sub-directories and tolerance of individual fetch failures.
"""

import httpx
import pytest

from repo_indexer.services.repo_walker import (
    MAX_FILE_SIZE,
    RepositoryWalker,
    file_extension,
    is_indexable,
    join_path,
)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("main.go", "go"),
        ("README.MD", "md"),
        ("archive.tar.gz", "gz"),
        ("Dockerfile", "dockerfile"),
        ("app", "app"),
        ("trailing.", "trailing."),
    ],
)
def test_file_extension(name, expected):
    assert file_extension(name) == expected


def test_is_indexable_allow_list_and_size():
    """Extension must be allowed and size at most 1 MiB."""
    assert is_indexable({"name": "main.go", "size": 10})
    assert is_indexable({"name": "Dockerfile", "size": 10})
    assert is_indexable({"name": "big.py", "size": MAX_FILE_SIZE})
    assert not is_indexable({"name": "big.py", "size": MAX_FILE_SIZE + 1})
    assert not is_indexable({"name": "image.png", "size": 10})
    assert not is_indexable({"name": "app", "size": 10})


def test_join_path():
    assert join_path("", "src") == "src"
    assert join_path("src", "app.js") == "src/app.js"


@pytest.mark.asyncio
async def test_scan_filters_by_extension_and_size(upstream):
    """image.png and a 2 MiB file are skipped; main.go is kept."""
    upstream.add_file("o/r", "image.png", "PNG", size=500)
    upstream.add_file("o/r", "main.go", "package m\n")
    upstream.add_file("o/r", "huge.js", "x", size=2 * 1024 * 1024)

    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler)) as http:
        result = await RepositoryWalker(http).scan("o/r", "ghp_token")

    assert [f.filename for f in result.files] == ["main.go"]
    assert result.files[0].content == "package m\n"
    assert result.errors == []
    downloads = upstream.requests_to("raw.githubusercontent.com")
    assert [r.url.path for r in downloads] == ["/o/r/main/main.go"]


@pytest.mark.asyncio
async def test_scan_recurses_with_repository_relative_paths(upstream, sample_repo):
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler)) as http:
        result = await RepositoryWalker(http, concurrency=2).scan("o/r", "ghp_token")

    assert sorted(f.filename for f in result.files) == ["README.md", "src/app.js"]


@pytest.mark.asyncio
async def test_scan_sends_bearer_token(upstream, sample_repo):
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler)) as http:
        await RepositoryWalker(http).scan("o/r", "ghp_secret")

    listing = upstream.requests_to("api.github.com")[0]
    assert listing.headers["Authorization"] == "Bearer ghp_secret"


@pytest.mark.asyncio
async def test_scan_survives_failed_download(upstream):
    """A file whose download 404s is omitted; the rest are still collected."""
    upstream.add_file("o/r", "a.py", "a = 1")
    upstream.add_file("o/r", "b.py", "b = 2")
    upstream.add_file("o/r", "c.py", "c = 3")
    upstream.missing_downloads.add("o/r:b.py")

    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler)) as http:
        result = await RepositoryWalker(http).scan("o/r", "ghp_token")

    assert sorted(f.filename for f in result.files) == ["a.py", "c.py"]
    assert len(result.errors) == 1
    assert result.errors[0].startswith("b.py")


@pytest.mark.asyncio
async def test_scan_survives_failed_directory_listing(upstream):
    upstream.add_file("o/r", "top.md", "# top")
    upstream.add_file("o/r", "broken/inner.py", "x = 1")
    upstream.add_file("o/r", "ok/inner.py", "y = 2")
    upstream.broken_dirs.add("o/r:broken")

    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler)) as http:
        result = await RepositoryWalker(http).scan("o/r", "ghp_token")

    assert sorted(f.filename for f in result.files) == ["ok/inner.py", "top.md"]
    assert result.errors and result.errors[0].startswith("broken")


@pytest.mark.asyncio
async def test_scan_survives_non_json_directory_listing(upstream, sample_repo):
    """A 200 listing whose body is not JSON counts as one failed directory."""
    upstream.add_file("o/r", "docs/guide.md", "# guide")
    upstream.garbled_paths.add("o/r:docs")

    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler)) as http:
        result = await RepositoryWalker(http).scan("o/r", "ghp_token")

    assert sorted(f.filename for f in result.files) == ["README.md", "src/app.js"]
    assert len(result.errors) == 1
    assert result.errors[0].startswith("docs")


@pytest.mark.asyncio
async def test_scan_ignores_malformed_listing_entries(upstream, sample_repo):
    def handler(request):
        resp = upstream.handler(request)
        if request.url.path == "/repos/o/r/contents":
            return httpx.Response(200, json=resp.json() + ["junk", None, 7])
        return resp

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        result = await RepositoryWalker(http).scan("o/r", "ghp_token")

    assert sorted(f.filename for f in result.files) == ["README.md", "src/app.js"]
    assert result.errors == []


@pytest.mark.asyncio
async def test_scan_of_unknown_repository_returns_empty(upstream):
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler)) as http:
        result = await RepositoryWalker(http).scan("ghost/none", "ghp_token")

    assert result.files == []
    assert len(result.errors) == 1


@pytest.mark.asyncio
async def test_fetch_paths_skips_missing_and_dedupes(upstream, sample_repo):
    """Targeted mode fetches each changed path once and drops the ones that are gone."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler)) as http:
        result = await RepositoryWalker(http).fetch_paths(
            "o/r", "ghp_token", ["README.md", "deleted.py", "README.md", "src"]
        )

    assert [f.filename for f in result.files] == ["README.md"]
    assert len(result.errors) == 1
    assert len(upstream.requests_to("raw.githubusercontent.com")) == 1


@pytest.mark.asyncio
async def test_walk_dispatches_on_paths(upstream, sample_repo):
    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler)) as http:
        walker = RepositoryWalker(http)
        full = await walker.walk("o/r", "ghp_token")
        targeted = await walker.walk("o/r", "ghp_token", ["src/app.js"])

    assert len(full) == 2
    assert [f.filename for f in targeted.files] == ["src/app.js"]


@pytest.mark.asyncio
async def test_fetch_paths_survives_non_json_content(upstream, sample_repo):
    upstream.garbled_paths.add("o/r:README.md")

    async with httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler)) as http:
        result = await RepositoryWalker(http).fetch_paths("o/r", "ghp_token", ["README.md", "src/app.js"])

    assert [f.filename for f in result.files] == ["src/app.js"]
    assert len(result.errors) == 1
    assert result.errors[0].startswith("README.md")
