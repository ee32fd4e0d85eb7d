"""
Unit tests for the aggregation views.
"""

from datetime import date, datetime, timedelta, timezone

from shared.models import Category, CommitDetail, CommitType, FileChange
from services.commit_insights.aggregator import (
    ROOT_GROUP,
    CommitAggregator,
    top_level_group,
    week_start,
)
from services.commit_insights.filters import CommitFilter


def commit(sha, when, files=(), message="feat: change", login="alice"):
    return CommitDetail(
        sha=sha,
        author_login=login,
        author_date=when,
        message=message,
        detail_url=f"https://api.github.test/repos/acme/widgets/commits/{sha}",
        files=[FileChange(path=path, status=status) for path, status in files],
    )


MONDAY = datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)
SUNDAY = datetime(2024, 3, 10, 23, 0, tzinfo=timezone.utc)
NEXT_TUESDAY = datetime(2024, 3, 12, 12, 0, tzinfo=timezone.utc)
THREE_WEEKS_LATER = datetime(2024, 3, 27, 12, 0, tzinfo=timezone.utc)


class TestHelpers:
    """Test cases for week and directory helpers."""

    def test_week_start_is_monday(self):
        assert week_start(commit("a" * 7, MONDAY)) == date(2024, 3, 4)
        assert week_start(commit("b" * 7, SUNDAY)) == date(2024, 3, 4)
        assert week_start(commit("c" * 7, NEXT_TUESDAY)) == date(2024, 3, 11)

    def test_week_start_uses_utc(self):
        # Monday 01:00 at UTC+3 is still Sunday in UTC.
        local = datetime(2024, 3, 11, 1, 0, tzinfo=timezone(timedelta(hours=3)))
        assert week_start(commit("d" * 7, local)) == date(2024, 3, 4)

    def test_top_level_group(self):
        assert top_level_group("src/app/index.tsx") == "src"
        assert top_level_group("README.md") == ROOT_GROUP
        assert top_level_group("/abs.py") == ROOT_GROUP


class TestWeeklySeries:
    """Test cases for CommitAggregator.weekly_series."""

    def test_shared_axis_with_zero_fill(self):
        aggregator = CommitAggregator()
        series = aggregator.weekly_series(
            {
                "alice": [commit("a" * 7, MONDAY), commit("b" * 7, SUNDAY)],
                "bob": [commit("c" * 7, NEXT_TUESDAY, login="bob")],
            }
        )

        assert series.weeks == [date(2024, 3, 4), date(2024, 3, 11)]
        assert series.series == {"alice": [2, 0], "bob": [0, 1]}

    def test_only_weeks_with_commits(self):
        aggregator = CommitAggregator()
        series = aggregator.weekly_series(
            {"alice": [commit("a" * 7, MONDAY), commit("b" * 7, THREE_WEEKS_LATER)]}
        )

        assert series.weeks == [date(2024, 3, 4), date(2024, 3, 25)]

    def test_counts_sum_to_filtered_commits(self):
        commits = [
            commit("a" * 7, MONDAY, message="feat: a"),
            commit("b" * 7, SUNDAY, message="fix: b"),
            commit("c" * 7, NEXT_TUESDAY, message="feat: c"),
        ]
        aggregator = CommitAggregator(CommitFilter(commit_type=CommitType.FEAT))
        series = aggregator.weekly_series({"alice": commits})

        assert sum(series.series["alice"]) == len(aggregator.commit_list(commits)) == 2

    def test_contributor_without_commits(self):
        series = CommitAggregator().weekly_series({"alice": []})

        assert series.weeks == []
        assert series.series == {"alice": []}


class TestCategoryHistogram:
    """Test cases for CommitAggregator.category_histogram."""

    def test_counts_every_file(self):
        commits = [
            commit("a" * 7, MONDAY, [("src/app.py", "modified"), ("README.md", "modified")]),
            commit("b" * 7, SUNDAY, [("web/App.tsx", "added"), ("src/app.py", "modified")]),
        ]
        histogram = CommitAggregator().category_histogram(commits)

        assert histogram == {
            Category.BACKEND: 2,
            Category.FRONTEND: 1,
            Category.DOCS: 1,
            Category.CONFIG: 0,
            Category.OTHER: 0,
        }

    def test_every_category_present_when_empty(self):
        histogram = CommitAggregator().category_histogram([])
        assert set(histogram) == set(Category)
        assert sum(histogram.values()) == 0

    def test_file_lookup(self):
        commits = [commit("a" * 7, MONDAY, [("scripts/build", "modified"), ("gone.py", "removed")])]
        lookup = {"scripts/build": Category.CONFIG}

        histogram = CommitAggregator().category_histogram(commits, lookup)

        assert histogram[Category.CONFIG] == 1
        assert histogram[Category.OTHER] == 1
        assert histogram[Category.BACKEND] == 0


class TestDirectorySummary:
    """Test cases for CommitAggregator.directory_summary."""

    def test_groups_and_statuses(self):
        commits = [
            commit("a" * 7, MONDAY, [("src/a.py", "added"), ("src/b.py", "modified"), ("README.md", "modified")]),
            commit("b" * 7, SUNDAY, [("src/a.py", "removed"), ("docs/x.md", "renamed")]),
        ]
        groups = {g.name: g for g in CommitAggregator().directory_summary(commits)}

        assert set(groups) == {"src", ROOT_GROUP, "docs"}
        assert groups["src"].commit_count == 2
        assert (groups["src"].new_files, groups["src"].modified_files, groups["src"].deleted_files) == (1, 1, 1)
        assert groups[ROOT_GROUP].commit_count == 1
        assert groups["docs"].commit_count == 1
        assert groups["docs"].new_files + groups["docs"].modified_files + groups["docs"].deleted_files == 0

    def test_commit_counted_once_per_group(self):
        commits = [commit("a" * 7, MONDAY, [("src/a.py", "modified"), ("src/b.py", "modified")])]
        groups = CommitAggregator().directory_summary(commits)

        assert groups[0].commit_count == 1
        assert groups[0].modified_files == 2

    def test_filter_applies(self):
        commits = [
            commit("a" * 7, MONDAY, [("src/a.py", "added")], message="fix: x"),
            commit("b" * 7, SUNDAY, [("lib/b.py", "added")], message="feat: y"),
        ]
        groups = CommitAggregator(CommitFilter(commit_type=CommitType.FIX)).directory_summary(commits)

        assert [g.name for g in groups] == ["src"]


class TestCommitList:
    """Test cases for CommitAggregator.commit_list."""

    def test_newest_first(self):
        commits = [commit("a" * 7, MONDAY), commit("b" * 7, NEXT_TUESDAY), commit("c" * 7, SUNDAY)]
        assert [c.sha for c in CommitAggregator().commit_list(commits)] == ["b" * 7, "c" * 7, "a" * 7]

    def test_window_applies(self):
        commits = [commit("a" * 7, MONDAY), commit("b" * 7, NEXT_TUESDAY)]
        aggregator = CommitAggregator(CommitFilter.build(date_from="2024-03-11"))

        assert [c.sha for c in aggregator.commit_list(commits)] == ["b" * 7]
