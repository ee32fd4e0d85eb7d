"""
Commit Insights Service for RepoPulse.

This service turns the paginated, rate-limited GitHub commit log into
per-contributor and per-period statistics:
- Commit listing with a page ceiling and rate-limit detection
- Concurrent per-page commit enrichment
- File category and commit type classification
- Weekly, category, directory and commit-list views
- Run superseding so a slower, older run never overwrites a newer one
- RESTful API for the presentation layer
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Tuple

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import redis.asyncio as redis

from config.settings import settings
from shared.events import BaseEvent, EventFactory, EventSerializer, EventValidator
from shared.exceptions import (
    DuplicateRepositoryError,
    InsightsError,
    MalformedResponseError,
    OwnerNotFoundError,
    RateLimitExceeded,
    RunSuperseded,
    UpstreamError,
)
from shared.models import (
    AnalysisReport,
    AnalysisRequest,
    Category,
    CommitDetail,
    Contributor,
    RateLimitStatus,
    RecentCommitsReport,
    RepositorySet,
    RunFailure,
    RunStatus,
)
from shared.transport import GitHubTransport
from services.commit_insights.aggregator import CommitAggregator
from services.commit_insights.discovery import RepositoryDiscovery, file_lookup
from services.commit_insights.enricher import CommitEnricher, index_by_sha
from services.commit_insights.filters import CommitFilter
from services.commit_insights.paginator import CommitPaginator
from services.commit_insights.runs import (
    RunToken,
    RunTracker,
    failure_from_exception,
    resolve_status,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.monitoring.log_level),
    format=settings.monitoring.log_format,
)
logger = logging.getLogger(__name__)


@dataclass
class CommitFetch:
    """Enriched commits of one listing walk."""

    details: List[CommitDetail] = field(default_factory=list)
    truncated: bool = False
    dropped: int = 0


class CommitInsightsService:
    """Core commit insights service with the fetch-and-aggregate pipeline."""

    def __init__(self, transport: Optional[GitHubTransport] = None):
        self.transport = transport
        self.redis_client = None
        self.repositories = RepositorySet()
        self.runs = RunTracker()
        # Caller-owned caches; the engine modules only receive them.
        self.detail_cache: Dict[Tuple[str, str], CommitDetail] = {}
        self.tree_cache: Dict[str, Dict[Category, List[str]]] = {}

    async def initialize(self):
        """Initialize the service."""
        if self.transport is None:
            self.transport = GitHubTransport()

        if settings.redis.enabled:
            self.redis_client = redis.from_url(
                settings.redis.url,
                decode_responses=True,
                socket_connect_timeout=settings.redis.socket_connect_timeout,
                socket_timeout=settings.redis.socket_timeout,
                retry_on_timeout=settings.redis.retry_on_timeout,
            )
            await self.redis_client.ping()

        mode = "authenticated" if settings.github.is_authenticated else "anonymous"
        logger.info(f"Commit insights service initialized ({mode} GitHub access)")

    async def close(self):
        """Close service connections."""
        if self.transport:
            await self.transport.close()
        if self.redis_client:
            await self.redis_client.close()
        logger.info("Commit insights service connections closed")

    @property
    def paginator(self) -> CommitPaginator:
        return CommitPaginator(self.transport)

    @property
    def discovery(self) -> RepositoryDiscovery:
        return RepositoryDiscovery(self.transport, self.paginator)

    # Repository set

    def add_repository(self, repository: str) -> str:
        added = self.repositories.add(repository)
        logger.info(f"Tracking repository {added}")
        return added

    def add_repositories(self, repositories: List[str]) -> List[str]:
        return self.repositories.add_many(repositories)

    def remove_repository(self, repository: str) -> bool:
        removed = self.repositories.remove(repository)
        if removed:
            # Invalidate in-flight runs and drop everything cached for it.
            self.runs.begin(repository)
            self.runs.forget(repository)
            self.tree_cache.pop(repository, None)
            for key in [key for key in self.detail_cache if key[0] == repository]:
                del self.detail_cache[key]
        return removed

    # Pipeline

    async def fetch_commits(
        self,
        repository: str,
        author: Optional[str] = None,
        run_token: Optional[RunToken] = None,
    ) -> CommitFetch:
        """List, then enrich page by page, the repository's commits."""
        listing = self.paginator.list_all(repository, author=author, run_token=run_token)
        enricher = CommitEnricher(self.transport, repository, cache=self.detail_cache)
        details: List[CommitDetail] = []
        try:
            async for page in listing.pages():
                details.extend(await enricher.enrich_page(page, run_token=run_token))
        except RateLimitExceeded as e:
            e.partial = details + e.partial
            raise

        if enricher.dropped:
            logger.warning(
                f"{len(enricher.dropped)} commits of {repository} could not be enriched"
            )
        return CommitFetch(
            details=details, truncated=listing.truncated, dropped=len(enricher.dropped)
        )

    async def analyze(self, request: AnalysisRequest) -> AnalysisReport:
        """Run one fetch-and-aggregate pass; the newest run of a repository wins."""
        repository = request.repository
        token = self.runs.begin(repository)
        await self.publish_event(EventFactory.run_started(repository, token.generation))

        aggregator = CommitAggregator(CommitFilter(request.commit_type, request.window))
        failures: List[RunFailure] = []
        lookup = None
        if request.use_file_tree:
            try:
                lookup = file_lookup(await self.file_categories(repository))
            except RateLimitExceeded as e:
                logger.warning(f"Rate limit hit reading the file tree of {repository}; stopping run")
                failures.append(failure_from_exception(repository, e))
                report = AnalysisReport(
                    repository=repository,
                    generation=token.generation,
                    status=resolve_status(failures, has_data=False),
                    complete=False,
                    commit_type=request.commit_type,
                    window=request.window,
                    failures=failures,
                )
                return await self._publish_report(token, report, commit_count=0)
            except (UpstreamError, MalformedResponseError) as e:
                logger.warning(f"Falling back to extension rules for {repository}: {e}")
                failures.append(failure_from_exception(repository, e))

        authors: List[Optional[str]] = [None] + list(request.contributors)
        results = await asyncio.gather(
            *(self.fetch_commits(repository, author=author, run_token=token) for author in authors),
            return_exceptions=True,
        )

        if not token.is_current or any(isinstance(r, RunSuperseded) for r in results):
            await self.publish_event(EventFactory.run_superseded(repository, token.generation))
            raise RunSuperseded(repository, token.generation)

        fetched: Dict[Optional[str], List[CommitDetail]] = {}
        complete = True
        truncated = False
        for author, result in zip(authors, results):
            if isinstance(result, CommitFetch):
                fetched[author] = result.details
                truncated = truncated or result.truncated
                continue
            if not isinstance(result, Exception):
                raise result
            if not isinstance(result, InsightsError):
                logger.exception(f"Unexpected failure fetching {repository}", exc_info=result)
            complete = False
            failures.append(failure_from_exception(repository, result, contributor=author))
            fetched[author] = result.partial if isinstance(result, RateLimitExceeded) else []

        repository_commits = list(index_by_sha(fetched.pop(None)).values())
        commit_lists = {login: aggregator.commit_list(commits) for login, commits in fetched.items()}
        aggregated = aggregator.commit_list(repository_commits)
        has_data = bool(aggregated) or any(commit_lists.values())

        report = AnalysisReport(
            repository=repository,
            generation=token.generation,
            status=resolve_status(failures, has_data),
            complete=complete,
            truncated=truncated,
            commit_type=request.commit_type,
            window=request.window,
            commit_lists=commit_lists,
            category_histograms={
                login: aggregator.category_histogram(commits, lookup)
                for login, commits in fetched.items()
            },
            weekly_series=aggregator.weekly_series(fetched),
            directory_summary=aggregator.directory_summary(repository_commits),
            failures=failures,
        )
        return await self._publish_report(token, report, commit_count=len(aggregated))

    async def _publish_report(
        self, token: RunToken, report: AnalysisReport, commit_count: int
    ) -> AnalysisReport:
        """Store the report unless the run was superseded, then announce it."""
        if not self.runs.publish(token, report):
            await self.publish_event(EventFactory.run_superseded(report.repository, token.generation))
            raise RunSuperseded(report.repository, token.generation)

        await self.publish_event(EventFactory.from_report(report, commit_count=commit_count))
        logger.info(
            f"Analysis {token.generation} of {report.repository} finished with status "
            f"{report.status.value} ({commit_count} commits)"
        )
        return report

    def latest_report(self, repository: str) -> Optional[AnalysisReport]:
        return self.runs.latest(repository)

    # Repository-level queries

    async def rate_limit(self) -> RateLimitStatus:
        return await self.transport.get_rate_limit()

    async def contributors(self, repository: str) -> List[Contributor]:
        return await self.discovery.list_contributors(repository)

    async def file_categories(self, repository: str) -> Dict[Category, List[str]]:
        return await self.discovery.file_categories(repository, cache=self.tree_cache)

    async def discover(self, owner: str) -> List[str]:
        return await self.discovery.owner_repositories(owner)

    async def recent_commits(self, repositories: Optional[List[str]] = None) -> RecentCommitsReport:
        repositories = list(repositories) if repositories else list(self.repositories)
        if not repositories:
            return RecentCommitsReport(status=RunStatus.NO_DATA)
        report = await self.discovery.recent_commits(repositories)
        for event in EventFactory.from_recent_commits(report):
            await self.publish_event(event)
        return report

    async def publish_event(self, event: BaseEvent):
        """Publish a run event to the Redis event bus, if enabled."""
        if self.redis_client is None:
            return
        try:
            if not EventValidator.is_valid(event):
                raise ValueError(f"Invalid event: {EventValidator.validate_event(event)}")
            await self.redis_client.publish(settings.redis.channel, EventSerializer.serialize(event))
            logger.debug(f"Published {event.event_type.value} event")
        except Exception as e:
            logger.error(f"Error publishing run event: {e}")
            # Don't raise - event publishing is not critical for a run


# Service instance
commit_insights_service = CommitInsightsService()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the service on startup and clean up on shutdown."""
    await commit_insights_service.initialize()
    yield
    await commit_insights_service.close()


# Initialize FastAPI app
app = FastAPI(
    title="Commit Insights Service",
    description="GitHub commit acquisition and contribution statistics",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.service.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/Response models
class RepositoryRequest(BaseModel):
    """Request model for tracking a repository."""
    repository: str = Field(..., description="Repository in owner/name form")


class RepositoriesRequest(BaseModel):
    """Request model for tracking several repositories at once."""
    repositories: List[str] = Field(..., description="Repositories in owner/name form")


class RepositoriesResponse(BaseModel):
    """Tracked repositories."""
    repositories: List[str]
    added: List[str] = Field(default_factory=list)


def to_http_error(error: InsightsError) -> HTTPException:
    """Map an engine error onto an HTTP error response."""
    if isinstance(error, OwnerNotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, RateLimitExceeded):
        return HTTPException(status_code=429, detail=str(error))
    if isinstance(error, (RunSuperseded, DuplicateRepositoryError)):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, UpstreamError) and error.status_code == 404:
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (UpstreamError, MalformedResponseError)):
        return HTTPException(status_code=502, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


# API endpoints
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    try:
        if commit_insights_service.redis_client is not None:
            await commit_insights_service.redis_client.ping()
        return {
            "status": "healthy",
            "service": "commit_insights",
            "timestamp": datetime.now(timezone.utc),
            "github": "authenticated" if settings.github.is_authenticated else "anonymous",
            "redis": "connected" if commit_insights_service.redis_client else "disabled",
        }
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "service": "commit_insights",
                "error": str(e),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )


@app.get("/rate-limit", response_model=RateLimitStatus)
async def get_rate_limit():
    """Current core rate limit of the configured credential."""
    try:
        return await commit_insights_service.rate_limit()
    except InsightsError as e:
        raise to_http_error(e)


@app.get("/repositories", response_model=RepositoriesResponse)
async def list_repositories():
    """Tracked repositories."""
    return RepositoriesResponse(repositories=list(commit_insights_service.repositories))


@app.post("/repositories", response_model=RepositoriesResponse, status_code=201)
async def add_repository(request: RepositoryRequest):
    """Track one repository."""
    try:
        added = commit_insights_service.add_repository(request.repository)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InsightsError as e:
        raise to_http_error(e)
    return RepositoriesResponse(
        repositories=list(commit_insights_service.repositories), added=[added]
    )


@app.post("/repositories/batch", response_model=RepositoriesResponse)
async def add_repositories(request: RepositoriesRequest):
    """Track several repositories, skipping duplicates and invalid names."""
    added = commit_insights_service.add_repositories(request.repositories)
    return RepositoriesResponse(repositories=list(commit_insights_service.repositories), added=added)


@app.delete("/repositories/{owner}/{name}", response_model=RepositoriesResponse)
async def remove_repository(owner: str, name: str):
    """Stop tracking a repository and drop its cached data."""
    if not commit_insights_service.remove_repository(f"{owner}/{name}"):
        raise HTTPException(status_code=404, detail="Repository is not tracked")
    return RepositoriesResponse(repositories=list(commit_insights_service.repositories))


@app.get("/owners/{owner}/repositories", response_model=List[str])
async def discover_repositories(owner: str):
    """Repositories of a GitHub user or organization."""
    try:
        return await commit_insights_service.discover(owner)
    except InsightsError as e:
        raise to_http_error(e)


@app.get("/repositories/{owner}/{name}/contributors", response_model=List[Contributor])
async def get_contributors(owner: str, name: str):
    """Contributors of a repository."""
    try:
        return await commit_insights_service.contributors(f"{owner}/{name}")
    except InsightsError as e:
        raise to_http_error(e)


@app.get("/repositories/{owner}/{name}/file-categories")
async def get_file_categories(owner: str, name: str) -> Dict[str, Any]:
    """Default-branch files grouped by category."""
    try:
        categories = await commit_insights_service.file_categories(f"{owner}/{name}")
    except InsightsError as e:
        raise to_http_error(e)
    return {
        "repository": f"{owner}/{name}",
        "counts": {category.value: len(paths) for category, paths in categories.items()},
        "files": {category.value: paths for category, paths in categories.items()},
    }


@app.post("/analysis", response_model=AnalysisReport)
async def run_analysis(request: AnalysisRequest):
    """Fetch, classify and aggregate commits of a repository."""
    try:
        return await asyncio.wait_for(
            commit_insights_service.analyze(request),
            timeout=settings.service.request_timeout,
        )
    except asyncio.TimeoutError:
        raise HTTPException(status_code=504, detail="Analysis timed out")
    except InsightsError as e:
        raise to_http_error(e)


@app.get("/analysis/{owner}/{name}", response_model=AnalysisReport)
async def get_latest_analysis(owner: str, name: str):
    """Latest published analysis of a repository."""
    report = commit_insights_service.latest_report(f"{owner}/{name}")
    if report is None:
        raise HTTPException(status_code=404, detail="No analysis available")
    return report


@app.get("/recent-commits", response_model=RecentCommitsReport)
async def get_recent_commits(
    repository: Optional[List[str]] = Query(None, description="Repositories (default: tracked)")
):
    """Latest commits merged across repositories."""
    return await commit_insights_service.recent_commits(repository)
