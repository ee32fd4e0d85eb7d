"""
Commit enrichment: fetch the detail record (file-level changes) of each summary.

One unreachable commit never aborts its siblings; it is dropped and logged. A
rate-limit refusal is different: it is raised so the whole run can stop and
report instead of quietly returning fewer commits.
"""

import asyncio
import logging
from typing import Dict, List, MutableMapping, Optional, Sequence, Tuple

from shared.exceptions import RateLimitExceeded
from shared.models import CommitDetail, CommitSummary, ModelConverter
from shared.transport import GitHubTransport
from services.commit_insights.runs import RunToken

logger = logging.getLogger(__name__)

# Caller-owned cache of enriched commits keyed by (repository, sha).
DetailCache = MutableMapping[Tuple[str, str], CommitDetail]


class CommitEnricher:
    """Fetches commit details through the URL embedded in each summary."""

    def __init__(
        self,
        transport: GitHubTransport,
        repository: str,
        cache: Optional[DetailCache] = None,
    ):
        self.transport = transport
        self.repository = repository
        self.cache = cache
        self.dropped: List[str] = []

    async def enrich(self, summary: CommitSummary) -> Optional[CommitDetail]:
        """Return the commit detail, or ``None`` if it could not be fetched."""
        key = (self.repository, summary.sha)
        if self.cache is not None and key in self.cache:
            return self.cache[key]

        result = await self.transport.request(summary.detail_url)
        if result.rate_limited:
            raise RateLimitExceeded(self.repository, reset=result.rate_limit_reset)
        if not result.ok:
            logger.warning(
                f"Dropping commit {summary.sha[:8]} of {self.repository}: {result.reason}"
            )
            self.dropped.append(summary.sha)
            return None

        try:
            detail = ModelConverter.detail_from_payload(result.body)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Dropping malformed detail of {summary.sha[:8]}: {e}")
            self.dropped.append(summary.sha)
            return None

        if self.cache is not None:
            self.cache[key] = detail
        return detail

    async def enrich_page(
        self,
        summaries: Sequence[CommitSummary],
        run_token: Optional[RunToken] = None,
    ) -> List[CommitDetail]:
        """Enrich one page concurrently and return the successful details.

        All enrichments of the page settle before anything is returned or
        raised.
        """
        if run_token is not None:
            run_token.ensure_current()

        results = await asyncio.gather(
            *(self.enrich(summary) for summary in summaries),
            return_exceptions=True,
        )

        details: List[CommitDetail] = []
        rate_limited: Optional[RateLimitExceeded] = None
        for result in results:
            if isinstance(result, RateLimitExceeded):
                rate_limited = rate_limited or result
            elif isinstance(result, BaseException):
                raise result
            elif result is not None:
                details.append(result)

        if rate_limited is not None:
            rate_limited.partial = details
            raise rate_limited
        return details


def index_by_sha(details: Sequence[CommitDetail]) -> Dict[str, CommitDetail]:
    """Join key from sha to detail; later duplicates replace earlier ones."""
    return {detail.sha: detail for detail in details}
