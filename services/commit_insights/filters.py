"""
Commit filtering shared by every aggregation view.

A single ``CommitFilter`` instance is applied identically by all views so the
views can never disagree on which commits are in scope.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, TypeVar

from shared.models import ALL_TYPES, CommitSummary, DateWindow, TypeFilter
from services.commit_insights.classifier import classify_type

C = TypeVar("C", bound=CommitSummary)


@dataclass(frozen=True)
class CommitFilter:
    """Commit-type filter plus inclusive author-date window."""

    commit_type: TypeFilter = ALL_TYPES
    window: DateWindow = field(default_factory=DateWindow)

    @classmethod
    def build(
        cls,
        commit_type: Optional[TypeFilter] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> "CommitFilter":
        return cls(
            commit_type=commit_type or ALL_TYPES,
            window=DateWindow.from_strings(date_from, date_to),
        )

    def matches(self, commit: CommitSummary) -> bool:
        if self.commit_type != ALL_TYPES and classify_type(commit.message) != self.commit_type:
            return False
        return self.window.contains(commit.author_date)

    def apply(self, commits: Iterable[C]) -> List[C]:
        """Matching commits in their original order."""
        return [commit for commit in commits if self.matches(commit)]


def matches(commit: CommitSummary, commit_type: TypeFilter, window: DateWindow) -> bool:
    return CommitFilter(commit_type=commit_type, window=window).matches(commit)
