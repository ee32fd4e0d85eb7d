"""
Repository discovery and repository-level metadata.

Covers owner repository listing, contributors, the categorized file tree of the
default branch, and the latest commits merged across tracked repositories.
"""

import asyncio
import logging
from typing import Dict, Iterable, List, MutableMapping, Optional

from config.settings import settings
from shared.exceptions import (
    MalformedResponseError,
    OwnerNotFoundError,
    RateLimitExceeded,
    UpstreamError,
)
from shared.models import (
    Category,
    Contributor,
    ModelConverter,
    RecentCommit,
    RecentCommitsReport,
    RunFailure,
)
from shared.transport import GitHubTransport
from services.commit_insights.classifier import categorize_tree
from services.commit_insights.paginator import CommitPaginator
from services.commit_insights.runs import failure_from_exception, resolve_status

logger = logging.getLogger(__name__)

# Caller-owned cache of categorized file trees keyed by repository.
FileTreeCache = MutableMapping[str, Dict[Category, List[str]]]


def file_lookup(categories: Dict[Category, List[str]]) -> Dict[str, Category]:
    """Invert a categorized tree into a path to category lookup."""
    return {path: category for category, paths in categories.items() for path in paths}


class RepositoryDiscovery:
    """Repository-level queries that sit beside the commit pipeline."""

    def __init__(self, transport: GitHubTransport, paginator: Optional[CommitPaginator] = None):
        self.transport = transport
        self.paginator = paginator or CommitPaginator(transport)

    async def owner_repositories(self, owner: str) -> List[str]:
        """Full names of an owner's repositories, trying user then organization."""
        try:
            return await self._list_repositories(f"/users/{owner}/repos", owner)
        except UpstreamError as e:
            if e.status_code != 404:
                raise
        logger.info(f"{owner} is not a user, trying organization")
        try:
            return await self._list_repositories(f"/orgs/{owner}/repos", owner)
        except UpstreamError as e:
            if e.status_code == 404:
                raise OwnerNotFoundError(owner)
            raise

    async def _list_repositories(self, path: str, owner: str) -> List[str]:
        names = []
        async for items in self.paginator.walk(path, owner):
            for item in items:
                if isinstance(item, dict) and item.get("full_name"):
                    names.append(item["full_name"])
        return sorted(names)

    async def list_contributors(self, repository: str) -> List[Contributor]:
        contributors = []
        async for items in self.paginator.walk(f"/repos/{repository}/contributors", repository):
            for item in items:
                try:
                    contributors.append(ModelConverter.contributor_from_payload(item))
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Skipping malformed contributor of {repository}: {e}")
        return contributors

    async def file_categories(
        self, repository: str, cache: Optional[FileTreeCache] = None
    ) -> Dict[Category, List[str]]:
        """Blob paths of the default branch grouped by category."""
        if cache is not None and repository in cache:
            return cache[repository]

        details = await self._get(f"/repos/{repository}", repository)
        branch = details.get("default_branch") if isinstance(details, dict) else None
        if not branch:
            raise MalformedResponseError(repository, "repository has no default branch")

        tree = await self._get(
            f"/repos/{repository}/git/trees/{branch}", repository, params={"recursive": 1}
        )
        if not isinstance(tree, dict) or not isinstance(tree.get("tree"), list):
            raise MalformedResponseError(repository, "Empty or invalid tree structure")
        if tree.get("truncated"):
            logger.warning(f"File tree of {repository} was truncated by GitHub")

        paths = [
            entry["path"]
            for entry in tree["tree"]
            if isinstance(entry, dict) and entry.get("type") == "blob" and entry.get("path")
        ]
        categories = categorize_tree(paths)
        if cache is not None:
            cache[repository] = categories
        return categories

    async def _get(self, path: str, repository: str, params=None):
        result = await self.transport.request(path, params)
        if result.rate_limited:
            raise RateLimitExceeded(repository, reset=result.rate_limit_reset)
        if not result.ok:
            raise UpstreamError(repository, result.status_code, result.reason)
        return result.body

    async def latest_commits(self, repository: str, count: int) -> List[RecentCommit]:
        try:
            body = await self._get(
                f"/repos/{repository}/commits", repository, params={"per_page": count}
            )
        except UpstreamError as e:
            if e.status_code != 409:
                raise
            logger.info(f"{repository} has no commits yet")
            return []
        if body is None:
            return []
        if not isinstance(body, list):
            raise MalformedResponseError(repository, "expected a list of commits")
        commits = []
        for item in body:
            try:
                summary = ModelConverter.summary_from_payload(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed commit in {repository}: {e}")
                continue
            commits.append(RecentCommit(repository=repository, commit=summary))
        return commits

    async def recent_commits(
        self,
        repositories: Iterable[str],
        per_repository: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> RecentCommitsReport:
        """Latest commits across repositories; one failing repository never blocks the rest."""
        repositories = list(repositories)
        per_repository = per_repository or settings.fetch.recent_commits_per_repository
        limit = limit or settings.fetch.recent_commits_limit

        results = await asyncio.gather(
            *(self.latest_commits(repository, per_repository) for repository in repositories),
            return_exceptions=True,
        )

        merged: List[RecentCommit] = []
        failures: List[RunFailure] = []
        for repository, result in zip(repositories, results):
            if isinstance(result, Exception):
                logger.warning(f"Recent commits of {repository} unavailable: {result}")
                failures.append(failure_from_exception(repository, result))
            elif isinstance(result, BaseException):
                raise result
            else:
                merged.extend(result)

        merged.sort(key=lambda recent: recent.commit.author_date, reverse=True)
        return RecentCommitsReport(
            status=resolve_status(failures, bool(merged)),
            commits=merged[:limit],
            failures=failures,
        )
