"""
Unit tests for shared models module.

Covers payload conversion, validation, date windows, the repository set and
report models.
"""

from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from conftest import commit_detail, commit_item
from shared.exceptions import DuplicateRepositoryError
from shared.models import (
    ALL_TYPES,
    AnalysisReport,
    AnalysisRequest,
    Category,
    CommitSummary,
    CommitType,
    DateWindow,
    FileChange,
    FileStatus,
    ModelConverter,
    ModelValidator,
    RateLimitStatus,
    RepositorySet,
    RunStatus,
    WeeklySeries,
)


class TestEnums:
    """Test cases for model enums."""

    def test_category_values(self):
        assert [c.value for c in Category] == ["backend", "frontend", "docs", "config", "other"]

    def test_commit_type_values(self):
        assert CommitType.FEAT == "feat"
        assert CommitType.OTHER == "other"
        assert len(CommitType) == 9

    def test_run_status_values(self):
        assert RunStatus.RATE_LIMIT_EXCEEDED == "rate_limit_exceeded"
        assert RunStatus.NO_DATA == "no_data"


class TestFileChange:
    """Test cases for FileChange."""

    def test_known_status(self):
        change = FileChange(path="src/app.py", status="added")
        assert change.file_status is FileStatus.ADDED

    def test_other_status_is_retained(self):
        change = FileChange(path="src/app.py", status="renamed")
        assert change.status == "renamed"
        assert change.file_status is None


class TestCommitSummary:
    """Test cases for CommitSummary."""

    def test_naive_date_becomes_utc(self):
        summary = CommitSummary(
            sha="a" * 40,
            author_date=datetime(2024, 3, 4, 10, 0),
            detail_url="https://api.github.test/x",
        )
        assert summary.author_date.tzinfo == timezone.utc

    def test_headline(self):
        summary = CommitSummary(
            sha="abcdef1",
            author_date="2024-03-04T10:00:00Z",
            message="fix: crash\n\nLonger body",
            detail_url="https://api.github.test/x",
        )
        assert summary.headline == "fix: crash"

    def test_sha_validation(self):
        with pytest.raises(ValidationError):
            CommitSummary(sha="abc", author_date="2024-03-04T10:00:00Z", detail_url="u")


class TestModelConverter:
    """Test cases for ModelConverter."""

    def test_summary_from_payload(self):
        item = commit_item("a" * 40, login="alice", message="docs: readme")
        summary = ModelConverter.summary_from_payload(item)

        assert summary.sha == "a" * 40
        assert summary.author_login == "alice"
        assert summary.message == "docs: readme"
        assert summary.detail_url == item["url"]
        assert summary.author_date == datetime(2024, 3, 4, 10, 0, tzinfo=timezone.utc)

    def test_summary_without_linked_author(self):
        item = commit_item("b" * 40, login=None)
        assert ModelConverter.summary_from_payload(item).author_login is None

    def test_summary_missing_fields(self):
        with pytest.raises(KeyError):
            ModelConverter.summary_from_payload({"sha": "c" * 40})

    def test_detail_from_payload(self):
        payload = commit_detail(commit_item("d" * 40), [("src/a.py", "added"), ("README.md", "modified")])
        detail = ModelConverter.detail_from_payload(payload)

        assert [f.path for f in detail.files] == ["src/a.py", "README.md"]
        assert detail.files[0].file_status is FileStatus.ADDED

    def test_detail_without_files(self):
        detail = ModelConverter.detail_from_payload(commit_item("e" * 40))
        assert detail.files == []

    def test_rate_limit_from_payload(self):
        payload = {"resources": {"core": {"limit": 5000, "remaining": 1250, "reset": 1700000000}}}
        status = ModelConverter.rate_limit_from_payload(payload)

        assert status.remaining == 1250
        assert status.remaining_percentage == 25.0
        assert status.reset_at == datetime.fromtimestamp(1700000000, tz=timezone.utc)

    def test_contributor_from_payload(self):
        contributor = ModelConverter.contributor_from_payload({"login": "alice", "contributions": 12})
        assert contributor.login == "alice"
        assert contributor.contributions == 12


class TestModelValidator:
    """Test cases for ModelValidator."""

    def test_valid_repository_id(self):
        assert ModelValidator.validate_repository_id("acme/widgets") == []
        assert ModelValidator.is_repository_id("my-org/my.repo_2")

    @pytest.mark.parametrize("value", ["", "   ", "acme", "acme/", "/widgets", "a/b/c", None, 42])
    def test_invalid_repository_id(self, value):
        assert ModelValidator.validate_repository_id(value) != []

    def test_parse_type_filter(self):
        assert ModelValidator.parse_type_filter(None) == ALL_TYPES
        assert ModelValidator.parse_type_filter("  ") == ALL_TYPES
        assert ModelValidator.parse_type_filter("ALL") == ALL_TYPES
        assert ModelValidator.parse_type_filter("Fix") is CommitType.FIX

    def test_parse_type_filter_unknown(self):
        with pytest.raises(ValueError):
            ModelValidator.parse_type_filter("wip")


class TestDateWindow:
    """Test cases for DateWindow."""

    def test_open_window_contains_everything(self):
        window = DateWindow()
        assert window.is_open
        assert window.contains(datetime(1999, 1, 1, tzinfo=timezone.utc))

    def test_blank_strings_are_unset(self):
        window = DateWindow.from_strings("", "  ")
        assert window.is_open

    def test_bounds_are_inclusive_days(self):
        window = DateWindow.from_strings("2024-03-01", "2024-03-31")

        assert window.contains(datetime(2024, 3, 1, 0, 0, tzinfo=timezone.utc))
        assert window.contains(datetime(2024, 3, 31, 23, 59, tzinfo=timezone.utc))
        assert not window.contains(datetime(2024, 4, 1, 0, 0, tzinfo=timezone.utc))
        assert not window.contains(datetime(2024, 2, 29, 23, 59, tzinfo=timezone.utc))

    def test_reversed_window_rejected(self):
        with pytest.raises(ValidationError):
            DateWindow(date_from=date(2024, 4, 1), date_to=date(2024, 3, 1))


class TestAnalysisRequest:
    """Test cases for AnalysisRequest."""

    def test_defaults(self):
        request = AnalysisRequest(repository="acme/widgets")

        assert request.contributors == []
        assert request.commit_type == ALL_TYPES
        assert request.window.is_open
        assert request.use_file_tree is False

    def test_commit_type_parsing(self):
        request = AnalysisRequest(repository="acme/widgets", commit_type="feat")
        assert request.commit_type is CommitType.FEAT

    def test_contributors_deduplicated(self):
        request = AnalysisRequest(repository="acme/widgets", contributors=["alice", " alice", "bob", ""])
        assert request.contributors == ["alice", "bob"]

    def test_invalid_repository(self):
        with pytest.raises(ValidationError):
            AnalysisRequest(repository="widgets")

    def test_window_from_request(self):
        request = AnalysisRequest(repository="acme/widgets", date_from="2024-01-01")
        assert request.window.date_from == date(2024, 1, 1)
        assert request.window.date_to is None


class TestRepositorySet:
    """Test cases for RepositorySet."""

    def test_add_keeps_sorted(self):
        repositories = RepositorySet()
        repositories.add("zeta/app")
        repositories.add("acme/widgets")

        assert list(repositories) == ["acme/widgets", "zeta/app"]
        assert len(repositories) == 2
        assert "acme/widgets" in repositories

    def test_add_duplicate(self):
        repositories = RepositorySet(["acme/widgets"])
        with pytest.raises(DuplicateRepositoryError):
            repositories.add("acme/widgets")

    def test_add_invalid(self):
        with pytest.raises(ValueError):
            RepositorySet().add("not-a-repo")

    def test_add_many_skips_invalid_and_duplicates(self):
        repositories = RepositorySet(["acme/widgets"])
        added = repositories.add_many(["acme/widgets", "bad", "acme/gadgets", "acme/gadgets"])

        assert added == ["acme/gadgets"]
        assert list(repositories) == ["acme/gadgets", "acme/widgets"]

    def test_remove(self):
        repositories = RepositorySet(["acme/widgets"])
        assert repositories.remove("acme/widgets") is True
        assert repositories.remove("acme/widgets") is False
        assert len(repositories) == 0


class TestReports:
    """Test cases for report models."""

    def test_weekly_series_rows(self):
        series = WeeklySeries(
            weeks=[date(2024, 3, 4), date(2024, 3, 11)],
            series={"alice": [2, 0], "bob": [1, 3]},
        )
        assert series.rows() == [
            {"week": "2024-03-04", "alice": 2, "bob": 1},
            {"week": "2024-03-11", "alice": 0, "bob": 3},
        ]

    def test_rate_limit_zero_limit(self):
        assert RateLimitStatus(limit=0, remaining=0, reset=0).remaining_percentage == 0.0

    def test_analysis_report_serializes(self):
        report = AnalysisReport(
            repository="acme/widgets",
            category_histograms={"alice": {category: 0 for category in Category}},
        )
        dumped = report.model_dump(mode="json")

        assert dumped["status"] == "ok"
        assert dumped["category_histograms"]["alice"]["backend"] == 0
        assert dumped["commit_type"] == "all"
