"""
Aggregation of enriched commits into the four insight views.

Each view is an independent fold over the commits that pass the aggregator's
``CommitFilter``:

- weekly series per contributor on a shared Monday-based week axis
- per-contributor file category histogram
- directory summary over all repository commits
- per-contributor commit list for display
"""

from collections import defaultdict
from datetime import date, timedelta, timezone
from typing import Dict, List, Mapping, Optional, Sequence, Set

from shared.models import (
    Category,
    CommitDetail,
    DirectorySummary,
    FileStatus,
    WeeklySeries,
)
from services.commit_insights.classifier import categorize
from services.commit_insights.filters import CommitFilter

ROOT_GROUP = "root"


def week_start(commit: CommitDetail) -> date:
    """Monday of the UTC week containing the commit's author date."""
    day = commit.author_date.astimezone(timezone.utc).date()
    return day - timedelta(days=day.weekday())


def top_level_group(path: str) -> str:
    """First path segment, or ``root`` for files without a directory."""
    if "/" not in path:
        return ROOT_GROUP
    return path.split("/", 1)[0] or ROOT_GROUP


class CommitAggregator:
    """Folds enriched commits into aggregation views under one filter."""

    def __init__(self, commit_filter: Optional[CommitFilter] = None):
        self.commit_filter = commit_filter or CommitFilter()

    def weekly_series(self, commits_by_contributor: Mapping[str, Sequence[CommitDetail]]) -> WeeklySeries:
        per_contributor: Dict[str, Dict[date, int]] = {}
        all_weeks: Set[date] = set()

        for login, commits in commits_by_contributor.items():
            counts: Dict[date, int] = defaultdict(int)
            for commit in self.commit_filter.apply(commits):
                counts[week_start(commit)] += 1
            per_contributor[login] = counts
            all_weeks.update(counts)

        weeks = sorted(all_weeks)
        return WeeklySeries(
            weeks=weeks,
            series={
                login: [counts.get(week, 0) for week in weeks]
                for login, counts in per_contributor.items()
            },
        )

    def category_histogram(
        self,
        commits: Sequence[CommitDetail],
        file_categories: Optional[Mapping[str, Category]] = None,
    ) -> Dict[Category, int]:
        """Count file changes per category across all matching commits.

        With ``file_categories`` (path to category, built from the repository
        tree) paths are looked up there and unknown paths count as ``other``.
        """
        histogram = {category: 0 for category in Category}
        for commit in self.commit_filter.apply(commits):
            for change in commit.files:
                if file_categories is not None:
                    category = file_categories.get(change.path, Category.OTHER)
                else:
                    category = categorize(change.path)
                histogram[category] += 1
        return histogram

    def directory_summary(self, commits: Sequence[CommitDetail]) -> List[DirectorySummary]:
        """Per top-level directory: distinct commits and file status counts."""
        groups: Dict[str, DirectorySummary] = {}
        shas: Dict[str, Set[str]] = defaultdict(set)

        for commit in self.commit_filter.apply(commits):
            for change in commit.files:
                name = top_level_group(change.path)
                group = groups.setdefault(name, DirectorySummary(name=name))
                shas[name].add(commit.sha)

                status = change.file_status
                if status is FileStatus.ADDED:
                    group.new_files += 1
                elif status is FileStatus.MODIFIED:
                    group.modified_files += 1
                elif status is FileStatus.REMOVED:
                    group.deleted_files += 1

        for name, group in groups.items():
            group.commit_count = len(shas[name])
        return list(groups.values())

    def commit_list(self, commits: Sequence[CommitDetail]) -> List[CommitDetail]:
        """Matching commits, newest author date first."""
        return sorted(
            self.commit_filter.apply(commits),
            key=lambda commit: commit.author_date,
            reverse=True,
        )
