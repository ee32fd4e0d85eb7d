"""
Error taxonomy for the commit insights engine.

Every failure the engine can hit resolves to one of these types so callers
can branch on it instead of inspecting messages.
"""

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from shared.models import CommitDetail


class InsightsError(Exception):
    """Base class for all engine errors."""


class RateLimitExceeded(InsightsError):
    """The remote API refused a request because the rate limit is exhausted.

    ``partial`` holds the commits already enriched (``CommitDetail``) when the
    limit was hit, so call sites may keep them without presenting them as
    complete. Listing and metadata calls raise with an empty ``partial``.
    """

    def __init__(
        self,
        repository: Optional[str] = None,
        partial: Optional[List["CommitDetail"]] = None,
        reset: Optional[int] = None,
    ):
        self.repository = repository
        self.partial = list(partial or [])
        self.reset = reset
        where = f" for {repository}" if repository else ""
        super().__init__(f"GitHub API rate limit exceeded{where}")


class UpstreamError(InsightsError):
    """A listing or metadata request failed with a non-rate-limit error."""

    def __init__(self, repository: Optional[str], status_code: Optional[int], reason: str = ""):
        self.repository = repository
        self.status_code = status_code
        self.reason = reason or (f"HTTP {status_code}" if status_code else "network error")
        super().__init__(f"Upstream request failed for {repository}: {self.reason}")


class MalformedResponseError(InsightsError):
    """The remote API answered with a structure the engine cannot use."""

    def __init__(self, repository: Optional[str], reason: str):
        self.repository = repository
        self.reason = reason
        super().__init__(f"Malformed response for {repository}: {reason}")


class OwnerNotFoundError(InsightsError):
    """The owner is neither a GitHub user nor an organization."""

    def __init__(self, owner: str):
        self.owner = owner
        super().__init__(f"Owner not found as user or organization: {owner}")


class DuplicateRepositoryError(InsightsError):
    """The repository is already part of the tracked set."""

    def __init__(self, repository: str):
        self.repository = repository
        super().__init__(f"Repository already added: {repository}")


class RunSuperseded(InsightsError):
    """A newer run for the same key started; this run's results are stale."""

    def __init__(self, key: str, generation: int):
        self.key = key
        self.generation = generation
        super().__init__(f"Run {generation} for {key} was superseded by a newer run")


__all__ = [
    "InsightsError",
    "RateLimitExceeded",
    "UpstreamError",
    "MalformedResponseError",
    "OwnerNotFoundError",
    "DuplicateRepositoryError",
    "RunSuperseded",
]
