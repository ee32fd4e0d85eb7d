"""
Shared fixtures for RepoPulse tests.

``FakeGitHub`` routes ``httpx.MockTransport`` requests by URL path so engine
modules can be exercised against canned GitHub payloads without a network.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from config.settings import GitHubSettings
from shared.transport import GitHubTransport

API_URL = "https://api.github.test"


def commit_item(
    sha: str,
    login: Optional[str] = "octocat",
    date: str = "2024-03-04T10:00:00Z",
    message: str = "feat: add widget",
    repository: str = "acme/widgets",
) -> Dict[str, Any]:
    """One item of the commit listing endpoint."""
    return {
        "sha": sha,
        "url": f"{API_URL}/repos/{repository}/commits/{sha}",
        "author": {"login": login} if login else None,
        "commit": {
            "author": {"name": login or "Ghost", "date": date},
            "message": message,
        },
    }


def commit_detail(item: Dict[str, Any], files: List[Tuple[str, str]]) -> Dict[str, Any]:
    """Detail payload for a listing item with ``(filename, status)`` files."""
    return {**item, "files": [{"filename": name, "status": status} for name, status in files]}


class FakeGitHub:
    """Path-routed fake of the GitHub REST API."""

    def __init__(self):
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, path: str, json: Any = None, status_code: int = 200, headers=None):
        self.routes[path] = lambda request: httpx.Response(status_code, json=json, headers=headers)

    def add_handler(self, path: str, handler: Callable[[httpx.Request], httpx.Response]):
        self.routes[path] = handler

    def add_pages(self, path: str, pages: List[List[Any]]):
        """Serve ``pages[n-1]`` for ``page=n``; pages past the end are empty."""
        def handler(request: httpx.Request) -> httpx.Response:
            page = int(request.url.params.get("page", "1"))
            body = pages[page - 1] if page <= len(pages) else []
            return httpx.Response(200, json=body)

        self.routes[path] = handler

    def add_history(self, path: str, items: List[Any]):
        """Serve ``items`` sliced by the request's ``per_page`` and ``page``."""
        def handler(request: httpx.Request) -> httpx.Response:
            per_page = int(request.url.params.get("per_page", "30"))
            page = int(request.url.params.get("page", "1"))
            start = (page - 1) * per_page
            return httpx.Response(200, json=items[start:start + per_page])

        self.routes[path] = handler

    def add_rate_limited(self, path: str):
        self.routes[path] = lambda request: httpx.Response(
            403,
            json={"message": "API rate limit exceeded for 127.0.0.1."},
            headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"},
        )

    def add_commit(self, item: Dict[str, Any], files: List[Tuple[str, str]]):
        path = httpx.URL(item["url"]).path
        self.add(path, json=commit_detail(item, files))

    def requested(self, path: str) -> List[httpx.Request]:
        return [request for request in self.requests if request.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return route(request)


@pytest.fixture
def github_settings():
    return GitHubSettings(api_url=API_URL, token="test-token")


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def transport(fake_github, github_settings):
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake_github.handler))
    return GitHubTransport(github_settings, client=client)
