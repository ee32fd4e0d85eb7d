"""
Data models for the RepoPulse commit insights engine.

This module provides:
- Commit summary/detail models built from GitHub API payloads
- File category and conventional-commit type enumerations
- Date window and rate limit models
- Aggregation views and run reports returned to callers
- Payload conversion and validation utilities
"""

import re
from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any, Iterable, Iterator, Literal, Union

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

from shared.exceptions import DuplicateRepositoryError

ALL_TYPES = "all"

REPOSITORY_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


class Category(str, Enum):
    """Coarse file categories used for contribution-mix analysis."""
    BACKEND = "backend"
    FRONTEND = "frontend"
    DOCS = "docs"
    CONFIG = "config"
    OTHER = "other"


class CommitType(str, Enum):
    """Conventional-commit message types."""
    FEAT = "feat"
    FIX = "fix"
    DOCS = "docs"
    STYLE = "style"
    REFACTOR = "refactor"
    PERF = "perf"
    TEST = "test"
    CHORE = "chore"
    OTHER = "other"


class FileStatus(str, Enum):
    """File statuses counted by the directory summary."""
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


class RunStatus(str, Enum):
    """Outcome of a fetch-and-aggregate run."""
    OK = "ok"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    PARTIAL_FAILURE = "partial_failure"
    NO_DATA = "no_data"


TypeFilter = Union[CommitType, Literal["all"]]


class FileChange(BaseModel):
    """A single file touched by a commit.

    ``status`` keeps GitHub's raw value; anything outside added/modified/removed
    (renamed, copied, changed) is retained as-is.
    """

    path: str = Field(..., min_length=1, description="Repository-relative file path")
    status: str = Field(..., description="GitHub file status")

    model_config = {"frozen": True}

    @property
    def file_status(self) -> Optional[FileStatus]:
        try:
            return FileStatus(self.status)
        except ValueError:
            return None


class CommitSummary(BaseModel):
    """Lightweight commit record produced by the listing endpoint."""

    sha: str = Field(..., min_length=7, max_length=40, description="Git commit SHA")
    author_login: Optional[str] = Field(None, description="GitHub login of the author, if linked")
    author_date: datetime = Field(..., description="Commit author date")
    message: str = Field(default="", description="Full commit message")
    detail_url: str = Field(..., description="API URL of the commit detail record")

    model_config = {"frozen": True}

    @field_validator("author_date")
    @classmethod
    def ensure_timezone(cls, v):
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def headline(self) -> str:
        """First line of the commit message."""
        return self.message.splitlines()[0] if self.message else ""


class CommitDetail(CommitSummary):
    """A commit summary enriched with its file-level changes."""

    files: List[FileChange] = Field(default_factory=list, description="Changed files")


class DateWindow(BaseModel):
    """Inclusive author-date window; an unset bound is open."""

    date_from: Optional[date] = Field(None, description="First included day")
    date_to: Optional[date] = Field(None, description="Last included day")

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def blank_is_unset(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def check_order(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self

    @classmethod
    def from_strings(cls, date_from: Optional[str] = None, date_to: Optional[str] = None) -> "DateWindow":
        """Build a window from optional ISO date strings."""
        return cls(date_from=date_from, date_to=date_to)

    @property
    def is_open(self) -> bool:
        return self.date_from is None and self.date_to is None

    def contains(self, moment: datetime) -> bool:
        day = moment.astimezone(timezone.utc).date() if moment.tzinfo else moment.date()
        if self.date_from and day < self.date_from:
            return False
        if self.date_to and day > self.date_to:
            return False
        return True


class Contributor(BaseModel):
    """Repository contributor as reported by GitHub."""

    login: str = Field(..., min_length=1)
    contributions: int = Field(default=0, ge=0)


class RateLimitStatus(BaseModel):
    """Snapshot of the core REST API rate limit."""

    limit: int = Field(..., ge=0)
    remaining: int = Field(..., ge=0)
    reset: int = Field(..., description="Reset time as epoch seconds")

    @computed_field
    @property
    def remaining_percentage(self) -> float:
        if self.limit == 0:
            return 0.0
        return round(self.remaining / self.limit * 100, 1)

    @property
    def reset_at(self) -> datetime:
        return datetime.fromtimestamp(self.reset, tz=timezone.utc)


class WeeklySeries(BaseModel):
    """Per-contributor weekly commit counts aligned on one week axis."""

    weeks: List[date] = Field(default_factory=list, description="Monday of each week, ascending")
    series: Dict[str, List[int]] = Field(default_factory=dict, description="Counts per contributor")

    def rows(self) -> List[Dict[str, Any]]:
        """One row per week, keyed by contributor login."""
        rows = []
        for index, week in enumerate(self.weeks):
            row: Dict[str, Any] = {"week": week.isoformat()}
            for login, counts in self.series.items():
                row[login] = counts[index]
            rows.append(row)
        return rows


class DirectorySummary(BaseModel):
    """Changes grouped under one top-level directory."""

    name: str
    commit_count: int = 0
    new_files: int = 0
    modified_files: int = 0
    deleted_files: int = 0


class RunFailure(BaseModel):
    """A failure isolated to one repository or contributor fetch."""

    repository: str
    contributor: Optional[str] = None
    reason: str
    rate_limited: bool = False


class AnalysisRequest(BaseModel):
    """Parameters of one analysis run."""

    repository: str = Field(..., description="Repository in owner/name form")
    contributors: List[str] = Field(default_factory=list, description="Contributor logins")
    commit_type: TypeFilter = Field(default=ALL_TYPES, description="Commit type or 'all'")
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    use_file_tree: bool = Field(
        default=False, description="Categorize files by the default-branch tree"
    )

    @field_validator("repository")
    @classmethod
    def validate_repository(cls, v):
        errors = ModelValidator.validate_repository_id(v)
        if errors:
            raise ValueError(errors[0])
        return v.strip()

    @field_validator("contributors")
    @classmethod
    def dedupe_contributors(cls, v):
        seen = []
        for login in v:
            login = login.strip()
            if login and login not in seen:
                seen.append(login)
        return seen

    @model_validator(mode="after")
    def check_window(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self

    @property
    def window(self) -> DateWindow:
        return DateWindow(date_from=self.date_from, date_to=self.date_to)

    class Config:
        json_schema_extra = {
            "example": {
                "repository": "acme/widgets",
                "contributors": ["octocat"],
                "commit_type": "feat",
                "date_from": "2024-01-01",
                "date_to": "2024-03-31",
            }
        }


class AnalysisReport(BaseModel):
    """The four aggregation views for one repository run."""

    repository: str
    generation: int = 0
    status: RunStatus = RunStatus.OK
    complete: bool = True
    truncated: bool = False
    commit_type: TypeFilter = ALL_TYPES
    window: DateWindow = Field(default_factory=DateWindow)
    commit_lists: Dict[str, List[CommitDetail]] = Field(default_factory=dict)
    category_histograms: Dict[str, Dict[Category, int]] = Field(default_factory=dict)
    weekly_series: WeeklySeries = Field(default_factory=WeeklySeries)
    directory_summary: List[DirectorySummary] = Field(default_factory=list)
    failures: List[RunFailure] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RecentCommit(BaseModel):
    """A recent commit tagged with its repository."""

    repository: str
    commit: CommitSummary


class RecentCommitsReport(BaseModel):
    """Latest commits merged across tracked repositories."""

    status: RunStatus = RunStatus.OK
    commits: List[RecentCommit] = Field(default_factory=list)
    failures: List[RunFailure] = Field(default_factory=list)


class RepositorySet:
    """Sorted, de-duplicated set of tracked repository ids."""

    def __init__(self, repositories: Optional[Iterable[str]] = None):
        self._repositories: List[str] = []
        if repositories:
            self.add_many(repositories)

    def add(self, repository: str) -> str:
        errors = ModelValidator.validate_repository_id(repository)
        if errors:
            raise ValueError(errors[0])
        repository = repository.strip()
        if repository in self._repositories:
            raise DuplicateRepositoryError(repository)
        self._repositories.append(repository)
        self._repositories.sort()
        return repository

    def add_many(self, repositories: Iterable[str]) -> List[str]:
        """Add every valid, not-yet-tracked repository; return those added."""
        added = []
        for repository in repositories:
            if not repository or not ModelValidator.is_repository_id(repository):
                continue
            if repository.strip() in self._repositories:
                continue
            added.append(self.add(repository))
        return added

    def remove(self, repository: str) -> bool:
        if repository in self._repositories:
            self._repositories.remove(repository)
            return True
        return False

    def __contains__(self, repository: object) -> bool:
        return repository in self._repositories

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._repositories))

    def __len__(self) -> int:
        return len(self._repositories)


class ModelConverter:
    """Converts GitHub REST payloads into engine models.

    Raises ``ValueError`` (or ``KeyError``/``TypeError``) on payloads that lack
    required fields; callers decide whether that drops an item or fails a run.
    """

    @staticmethod
    def summary_from_payload(item: Dict[str, Any]) -> CommitSummary:
        """Convert one item of ``GET /repos/{owner}/{repo}/commits``."""
        commit = item["commit"]
        author = item.get("author") or {}
        return CommitSummary(
            sha=item["sha"],
            author_login=author.get("login"),
            author_date=commit["author"]["date"],
            message=commit.get("message") or "",
            detail_url=item["url"],
        )

    @staticmethod
    def detail_from_payload(payload: Dict[str, Any]) -> CommitDetail:
        """Convert ``GET /repos/{owner}/{repo}/commits/{ref}``."""
        summary = ModelConverter.summary_from_payload(payload)
        files = [
            FileChange(path=entry["filename"], status=entry.get("status") or "")
            for entry in payload.get("files") or []
        ]
        return CommitDetail(**summary.model_dump(), files=files)

    @staticmethod
    def contributor_from_payload(item: Dict[str, Any]) -> Contributor:
        return Contributor(login=item["login"], contributions=item.get("contributions", 0))

    @staticmethod
    def rate_limit_from_payload(payload: Dict[str, Any]) -> RateLimitStatus:
        """Read ``resources.core`` of ``GET /rate_limit``."""
        core = payload["resources"]["core"]
        return RateLimitStatus(limit=core["limit"], remaining=core["remaining"], reset=core["reset"])


class ModelValidator:
    """Utility class for input validation."""

    @staticmethod
    def validate_repository_id(repository: Any) -> List[str]:
        """Validate an ``owner/name`` repository id and return list of errors."""
        errors = []
        if not isinstance(repository, str) or not repository.strip():
            errors.append("Repository must be a non-empty string")
            return errors
        if not REPOSITORY_ID_PATTERN.match(repository.strip()):
            errors.append(f"Repository must have the form owner/name: {repository}")
        return errors

    @staticmethod
    def is_repository_id(repository: Any) -> bool:
        return not ModelValidator.validate_repository_id(repository)

    @staticmethod
    def parse_type_filter(value: Optional[str]) -> TypeFilter:
        """Parse a commit type filter; blank or 'all' means no type filtering."""
        if value is None or not value.strip() or value.strip().lower() == ALL_TYPES:
            return ALL_TYPES
        return CommitType(value.strip().lower())


__all__ = [
    'ALL_TYPES', 'Category', 'CommitType', 'FileStatus', 'RunStatus', 'TypeFilter',
    'FileChange', 'CommitSummary', 'CommitDetail', 'DateWindow', 'Contributor',
    'RateLimitStatus', 'WeeklySeries', 'DirectorySummary', 'RunFailure',
    'AnalysisRequest', 'AnalysisReport', 'RecentCommit', 'RecentCommitsReport',
    'RepositorySet', 'ModelConverter', 'ModelValidator'
]
