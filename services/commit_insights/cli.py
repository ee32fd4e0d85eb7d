#!/usr/bin/env python3
"""
Commit Insights CLI Tool
Part of the RepoPulse Commit Insights Service

This CLI tool runs the commit insights engine in-process and renders its
reports: contributor activity, file category mix, directory summaries,
recent commits and the remaining API budget.
"""

import asyncio
import sys
from typing import Dict, List, Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.progress import Progress, SpinnerColumn, TextColumn

from shared.exceptions import InsightsError
from shared.models import (
    ALL_TYPES,
    AnalysisReport,
    AnalysisRequest,
    Category,
    CommitType,
    RecentCommitsReport,
    RunStatus,
)
from services.commit_insights.main import CommitInsightsService

# Initialize Rich console for beautiful output
console = Console()

STATUS_STYLES = {
    RunStatus.OK: "green",
    RunStatus.NO_DATA: "yellow",
    RunStatus.PARTIAL_FAILURE: "yellow",
    RunStatus.RATE_LIMIT_EXCEEDED: "red",
}


class InsightsCLI:
    """CLI interface around an in-process commit insights service."""

    def __init__(self, service: Optional[CommitInsightsService] = None):
        self.service = service or CommitInsightsService()

    async def __aenter__(self):
        await self.service.initialize()
        return self.service

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.service.close()


def run_with_service(work, message: str):
    """Run ``work(service)`` with a spinner; exit with status 1 on engine errors."""
    async def run():
        async with InsightsCLI() as service:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                progress.add_task(message, total=None)
                return await work(service)

    try:
        return asyncio.run(run())
    except (InsightsError, ValueError) as e:
        console.print(Panel(str(e), title="❌ Error", border_style="red"))
        sys.exit(1)


def display_report(report: AnalysisReport):
    """Display an analysis report as panels and tables."""
    style = STATUS_STYLES.get(report.status, "white")
    window = report.window
    content = (
        f"📦 Repository: {report.repository}\n"
        f"🏷️ Type: {getattr(report.commit_type, 'value', report.commit_type)}\n"
        f"📅 Window: {window.date_from or '…'} → {window.date_to or '…'}\n"
        f"🚦 Status: {report.status.value}"
    )
    if report.truncated:
        content += "\n✂️ History truncated at the page limit"
    if not report.complete:
        content += "\n⚠️ Results are incomplete"
    console.print(Panel(content, title=Text("📊 Commit Insights", style=f"bold {style}"), border_style=style))

    for failure in report.failures:
        who = f" ({failure.contributor})" if failure.contributor else ""
        console.print(f"[yellow]⚠️ {failure.repository}{who}: {failure.reason}[/yellow]")

    if report.weekly_series.weeks:
        table = Table(title="📈 Weekly Commits", show_header=True, header_style="bold magenta")
        table.add_column("Week", style="cyan")
        logins = list(report.weekly_series.series)
        for login in logins:
            table.add_column(login, justify="right")
        for row in report.weekly_series.rows():
            table.add_row(row["week"], *(str(row[login]) for login in logins))
        console.print(table)

    if report.category_histograms:
        table = Table(title="🗂️ File Categories", show_header=True, header_style="bold magenta")
        table.add_column("Contributor", style="cyan")
        for category in Category:
            table.add_column(category.value, justify="right")
        for login, histogram in report.category_histograms.items():
            table.add_row(login, *(str(histogram.get(category, 0)) for category in Category))
        console.print(table)

    if report.directory_summary:
        table = Table(title="📁 Directories", show_header=True, header_style="bold magenta")
        table.add_column("Directory", style="cyan")
        table.add_column("Commits", justify="right")
        table.add_column("New", justify="right", style="green")
        table.add_column("Modified", justify="right", style="yellow")
        table.add_column("Deleted", justify="right", style="red")
        for group in sorted(report.directory_summary, key=lambda g: g.commit_count, reverse=True):
            table.add_row(
                group.name,
                str(group.commit_count),
                str(group.new_files),
                str(group.modified_files),
                str(group.deleted_files),
            )
        console.print(table)

    for login, commits in report.commit_lists.items():
        table = Table(title=f"📝 Commits by {login}", show_header=True, header_style="bold magenta")
        table.add_column("Hash", style="green", width=10)
        table.add_column("Date", style="red", width=12)
        table.add_column("Files", justify="right", width=6)
        table.add_column("Message", style="white")
        for commit in commits:
            table.add_row(
                commit.sha[:8],
                commit.author_date.date().isoformat(),
                str(len(commit.files)),
                commit.headline[:60],
            )
        console.print(table)


def display_recent(report: RecentCommitsReport):
    """Display recent commits across repositories."""
    for failure in report.failures:
        console.print(f"[yellow]⚠️ {failure.repository}: {failure.reason}[/yellow]")

    if not report.commits:
        console.print(Panel("No recent commits found.", title="📋 Recent Commits"))
        return

    table = Table(title="📋 Recent Commits", show_header=True, header_style="bold magenta")
    table.add_column("Repository", style="cyan")
    table.add_column("Hash", style="green", width=10)
    table.add_column("Author", style="yellow", width=15)
    table.add_column("Date", style="red", width=20)
    table.add_column("Message", style="white")
    for recent in report.commits:
        commit = recent.commit
        table.add_row(
            recent.repository,
            commit.sha[:8],
            commit.author_login or "unknown",
            commit.author_date.strftime("%Y-%m-%d %H:%M"),
            commit.headline[:50],
        )
    console.print(table)


def split_repository(value: str) -> Tuple[str, str]:
    owner, _, name = value.partition("/")
    if not owner or not name:
        raise click.BadParameter(f"expected OWNER/NAME, got {value!r}")
    return owner, name


@click.group()
@click.version_option(version="1.0.0")
def cli():
    """RepoPulse - contribution statistics from GitHub commit history."""
    pass


@cli.command()
@click.argument('repository', type=str)
@click.option('--contributor', '-c', 'contributors', multiple=True, help='Contributor login (repeatable)')
@click.option(
    '--type', '-t', 'commit_type', default=ALL_TYPES,
    type=click.Choice([ALL_TYPES] + [t.value for t in CommitType]),
    help='Conventional-commit type to keep (default: all)'
)
@click.option('--from', 'date_from', default=None, help='First included day (YYYY-MM-DD)')
@click.option('--to', 'date_to', default=None, help='Last included day (YYYY-MM-DD)')
@click.option('--file-tree', is_flag=True, help='Categorize files by the default-branch tree')
@click.option('--json', 'as_json', is_flag=True, help='Print the raw report as JSON')
def analyze(repository: str, contributors: Tuple[str, ...], commit_type: str,
            date_from: Optional[str], date_to: Optional[str], file_tree: bool, as_json: bool):
    """Analyze the commits of REPOSITORY (OWNER/NAME)."""
    split_repository(repository)
    try:
        request = AnalysisRequest(
            repository=repository,
            contributors=list(contributors),
            commit_type=commit_type,
            date_from=date_from or None,
            date_to=date_to or None,
            use_file_tree=file_tree,
        )
    except ValueError as e:
        raise click.BadParameter(str(e))

    report = run_with_service(lambda service: service.analyze(request), "Analyzing commits...")
    if as_json:
        console.print_json(report.model_dump_json())
    else:
        display_report(report)


@cli.command()
@click.argument('repositories', nargs=-1, required=True)
@click.option('--json', 'as_json', is_flag=True, help='Print the raw report as JSON')
def recent(repositories: Tuple[str, ...], as_json: bool):
    """Show the latest commits across REPOSITORIES."""
    for repository in repositories:
        split_repository(repository)
    report = run_with_service(
        lambda service: service.recent_commits(list(repositories)), "Fetching recent commits..."
    )
    if as_json:
        console.print_json(report.model_dump_json())
    else:
        display_recent(report)


@cli.command()
@click.argument('owner', type=str)
def discover(owner: str):
    """List the repositories of a user or organization."""
    names: List[str] = run_with_service(lambda service: service.discover(owner), "Discovering repositories...")
    if not names:
        console.print(Panel(f"{owner} has no public repositories.", title="📦 Repositories"))
        return
    table = Table(title=f"📦 Repositories of {owner}", show_header=True, header_style="bold magenta")
    table.add_column("Repository", style="cyan")
    for name in names:
        table.add_row(name)
    console.print(table)


@cli.command()
@click.argument('repository', type=str)
def contributors(repository: str):
    """List the contributors of REPOSITORY."""
    split_repository(repository)
    people = run_with_service(lambda service: service.contributors(repository), "Fetching contributors...")
    table = Table(title=f"👥 Contributors of {repository}", show_header=True, header_style="bold magenta")
    table.add_column("Login", style="cyan")
    table.add_column("Contributions", justify="right", style="green")
    for person in people:
        table.add_row(person.login, str(person.contributions))
    console.print(table)


@cli.command()
@click.argument('repository', type=str)
def categories(repository: str):
    """Count default-branch files of REPOSITORY per category."""
    split_repository(repository)
    grouped: Dict[Category, List[str]] = run_with_service(
        lambda service: service.file_categories(repository), "Reading file tree..."
    )
    table = Table(title=f"🗂️ Files of {repository}", show_header=True, header_style="bold magenta")
    table.add_column("Category", style="cyan")
    table.add_column("Files", justify="right")
    for category in Category:
        table.add_row(category.value, str(len(grouped.get(category, []))))
    console.print(table)


@cli.command(name='rate-limit')
def rate_limit():
    """Show the remaining GitHub API budget."""
    status = run_with_service(lambda service: service.rate_limit(), "Checking rate limit...")
    style = "green" if status.remaining_percentage > 20 else "red"
    content = (
        f"🔢 Remaining: {status.remaining}/{status.limit} ({status.remaining_percentage}%)\n"
        f"⏱️ Resets at: {status.reset_at.strftime('%Y-%m-%d %H:%M:%S %Z')}"
    )
    console.print(Panel(content, title="🚦 GitHub Rate Limit", border_style=style))


if __name__ == "__main__":
    cli()
