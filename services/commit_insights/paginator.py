"""
Page-number pagination over GitHub listing endpoints.

Pages are requested strictly in order; page N+1 is only requested after page N
completed, because termination depends on seeing a short or empty page. A hard
page ceiling bounds the walk over very large histories.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

from config.settings import settings
from shared.exceptions import MalformedResponseError, RateLimitExceeded, UpstreamError
from shared.models import CommitSummary, ModelConverter
from shared.transport import GitHubTransport
from services.commit_insights.runs import RunToken

logger = logging.getLogger(__name__)


@dataclass
class WalkState:
    """Progress of one listing walk."""

    pages_fetched: int = 0
    items: List[Any] = field(default_factory=list)
    truncated: bool = False
    exhausted: bool = False


class CommitPaginator:
    """Walks ``per_page``/``page`` listings to exhaustion or the page ceiling."""

    def __init__(
        self,
        transport: GitHubTransport,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
    ):
        self.transport = transport
        self.page_size = page_size or settings.fetch.page_size
        self.max_pages = max_pages or settings.fetch.max_pages

    async def walk(
        self,
        path: str,
        repository: str,
        params: Optional[Dict[str, Any]] = None,
        run_token: Optional[RunToken] = None,
        state: Optional[WalkState] = None,
    ) -> AsyncIterator[List[Any]]:
        """Yield the raw items of each page until an empty or short page."""
        state = state if state is not None else WalkState()
        page = 1
        while True:
            if page > self.max_pages:
                state.truncated = await self.has_items_beyond_ceiling(path, params)
                if state.truncated:
                    logger.warning(
                        f"Stopped listing {path} after {self.max_pages} pages; "
                        f"older history of {repository} is not included"
                    )
                else:
                    state.exhausted = True
                return

            if run_token is not None:
                run_token.ensure_current()

            query = dict(params or {})
            query.update({"per_page": self.page_size, "page": page})
            result = await self.transport.request(path, query)

            if result.rate_limited:
                raise RateLimitExceeded(repository, reset=result.rate_limit_reset)
            if result.empty_repository and page == 1:
                logger.info(f"{repository} has no commits yet ({path})")
                state.exhausted = True
                return
            if not result.ok:
                raise UpstreamError(repository, result.status_code, result.reason)
            body = [] if result.body is None else result.body
            if not isinstance(body, list):
                raise MalformedResponseError(repository, f"expected a list from {path}, page {page}")

            state.pages_fetched += 1
            if not body:
                state.exhausted = True
                return

            yield body

            if len(body) < self.page_size:
                state.exhausted = True
                return
            page += 1

    async def has_items_beyond_ceiling(
        self, path: str, params: Optional[Dict[str, Any]] = None
    ) -> bool:
        """Ask for the single item right after the last page the walk may fetch.

        A walk whose last allowed page was full is only cut short when this
        item exists. An unreadable answer counts as cut short.
        """
        query = dict(params or {})
        query.update({"per_page": 1, "page": self.max_pages * self.page_size + 1})
        result = await self.transport.request(path, query)
        if result.ok and isinstance(result.body, list):
            return bool(result.body)
        if result.ok and result.body is None:
            return False
        logger.warning(f"Could not check for items past the page ceiling of {path}: {result.reason}")
        return True

    def list_all(
        self,
        repository: str,
        author: Optional[str] = None,
        run_token: Optional[RunToken] = None,
    ) -> "CommitListing":
        """Lazy listing of the repository's commits, optionally author-scoped."""
        return CommitListing(self, repository, author=author, run_token=run_token)


class CommitListing:
    """One walk of ``GET /repos/{owner}/{repo}/commits``.

    Iterate ``pages()`` for page-sized batches or the listing itself for single
    summaries. ``summaries`` accumulates everything listed so far and
    ``truncated`` reports whether the page ceiling cut the walk short, i.e.
    the last allowed page was full and at least one older commit exists.
    A repository without commits lists as empty.
    """

    def __init__(
        self,
        paginator: CommitPaginator,
        repository: str,
        author: Optional[str] = None,
        run_token: Optional[RunToken] = None,
    ):
        self.paginator = paginator
        self.repository = repository
        self.author = author
        self.run_token = run_token
        self.state = WalkState()

    @property
    def summaries(self) -> List[CommitSummary]:
        return self.state.items

    @property
    def truncated(self) -> bool:
        return self.state.truncated

    @property
    def pages_fetched(self) -> int:
        return self.state.pages_fetched

    async def pages(self) -> AsyncIterator[List[CommitSummary]]:
        params = {"author": self.author} if self.author else None
        async for items in self.paginator.walk(
            f"/repos/{self.repository}/commits",
            self.repository,
            params=params,
            run_token=self.run_token,
            state=self.state,
        ):
            batch = []
            for item in items:
                try:
                    batch.append(ModelConverter.summary_from_payload(item))
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Skipping malformed commit in {self.repository}: {e}")
            self.state.items.extend(batch)
            yield batch

    async def __aiter__(self) -> AsyncIterator[CommitSummary]:
        async for batch in self.pages():
            for summary in batch:
                yield summary

    async def collect(self) -> List[CommitSummary]:
        async for _ in self.pages():
            pass
        return list(self.summaries)
