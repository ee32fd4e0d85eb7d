"""
Run generations for superseding stale fetch-and-aggregate runs.

Every parameter change starts a new run. Each run gets a token carrying a
generation number that increases per key; the token travels through the whole
fetch chain, and only the latest-started run of a key may publish results.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from shared.exceptions import RateLimitExceeded, RunSuperseded
from shared.models import RunFailure, RunStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunToken:
    """Identifies one run of ``key``."""

    key: str
    generation: int
    tracker: "RunTracker" = field(compare=False, repr=False)

    @property
    def is_current(self) -> bool:
        return self.tracker.is_current(self)

    def ensure_current(self):
        """Raise ``RunSuperseded`` once a newer run of the same key started."""
        if not self.is_current:
            raise RunSuperseded(self.key, self.generation)


class RunTracker:
    """Hands out run tokens and keeps the latest published result per key."""

    def __init__(self):
        self._generations: Dict[str, int] = {}
        self._results: Dict[str, Any] = {}

    def begin(self, key: str) -> RunToken:
        generation = self._generations.get(key, 0) + 1
        self._generations[key] = generation
        logger.debug(f"Started run {generation} for {key}")
        return RunToken(key=key, generation=generation, tracker=self)

    def current_generation(self, key: str) -> int:
        return self._generations.get(key, 0)

    def is_current(self, token: RunToken) -> bool:
        return self._generations.get(token.key, 0) == token.generation

    def publish(self, token: RunToken, result: Any) -> bool:
        """Store ``result`` unless a newer run of the key has started."""
        if not self.is_current(token):
            logger.warning(
                f"Discarding result of run {token.generation} for {token.key}; "
                f"run {self.current_generation(token.key)} is newer"
            )
            return False
        self._results[token.key] = result
        return True

    def latest(self, key: str) -> Optional[Any]:
        return self._results.get(key)

    def forget(self, key: str):
        """Drop the stored result; the generation counter keeps counting."""
        self._results.pop(key, None)


def failure_from_exception(
    repository: str, error: BaseException, contributor: Optional[str] = None
) -> RunFailure:
    """Describe an isolated repository or contributor failure."""
    reason = getattr(error, "reason", None) or str(error) or type(error).__name__
    return RunFailure(
        repository=repository,
        contributor=contributor,
        reason=reason,
        rate_limited=isinstance(error, RateLimitExceeded),
    )


def resolve_status(failures: List[RunFailure], has_data: bool) -> RunStatus:
    """Collapse a run's failures into one status signal; rate limiting takes precedence."""
    if any(failure.rate_limited for failure in failures):
        return RunStatus.RATE_LIMIT_EXCEEDED
    if failures:
        return RunStatus.PARTIAL_FAILURE
    if not has_data:
        return RunStatus.NO_DATA
    return RunStatus.OK
