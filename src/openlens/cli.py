"""Command-line interface for openlens."""

import asyncio
import logging

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from openlens.config import get_settings
from openlens.credentials import CredentialHolder, validate_token
from openlens.fetcher import open_fetcher
from openlens.github_client import GitHubAPIError
from openlens.models import (
    MAX_STARS,
    FilterState,
    IssueFilterState,
    OrderOption,
    SortOption,
    UserProfile,
)
from openlens.session import SavedFilters, SearchHistory
from openlens.storage import StateStorage

console = Console()


def _format_number(num: int) -> str:
    return f"{num / 1000:.1f}k" if num >= 1000 else str(num)


def _split_repo(value: str) -> tuple[str, str]:
    owner, sep, name = value.partition("/")
    if not sep or not owner or not name or "/" in name:
        raise click.BadParameter("expected OWNER/REPO")
    return owner, name


def _fail(ctx: click.Context, error: GitHubAPIError) -> None:
    console.print(f"[red]Error: {error}[/red]")
    ctx.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Browse and filter GitHub repositories and issues."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@main.command()
@click.argument("query", required=False, default="")
@click.option("--language", "-l", multiple=True, help="Required keyword language(s)")
@click.option("--license", "license_key", default="All", help="License key, e.g. mit")
@click.option(
    "--sort",
    "-s",
    type=click.Choice([s.value for s in SortOption]),
    default=SortOption.STARS.value,
)
@click.option(
    "--order",
    type=click.Choice([o.value for o in OrderOption]),
    default=OrderOption.DESC.value,
)
@click.option("--min-stars", type=int, default=0, help="Minimum star count")
@click.option("--max-stars", type=int, default=MAX_STARS, help="Maximum star count")
@click.option("--page", "-p", type=int, default=1, help="Result page (1-based)")
@click.option("--user", "-u", help="Only repositories owned by this user")
@click.pass_context
def search(
    ctx: click.Context,
    query: str,
    language: tuple[str, ...],
    license_key: str,
    sort: str,
    order: str,
    min_stars: int,
    max_stars: int,
    page: int,
    user: str | None,
) -> None:
    """Search repositories.

    Examples:
        openlens search fastapi                # Text search
        openlens search -s trending            # Today's trending
        openlens search -l Rust -l Go          # Both keywords required
        openlens search --min-stars 100 -u me  # One user's repos
    """
    settings = get_settings()
    storage = StateStorage(settings.state_path)
    filters = FilterState(
        query=query.strip(),
        language=list(language),
        license=license_key,
        sort=SortOption(sort),
        order=OrderOption(order),
        min_stars=min_stars,
        max_stars=max_stars,
    )
    SavedFilters(storage).save(filters)
    SearchHistory(storage).add(filters.query)

    async def run():
        async with open_fetcher(settings) as fetcher:
            return await fetcher.search_repositories(filters, page=page, user=user)

    try:
        response = asyncio.run(run())
    except GitHubAPIError as e:
        _fail(ctx, e)
        return

    if response.warning:
        console.print(f"[yellow]{response.warning}[/yellow]")
    if not response.items:
        console.print("[yellow]No repositories found[/yellow]")
        return

    table = Table(title=f"Repositories (page {page}, {response.total_count} total)")
    table.add_column("Repository", style="cyan")
    table.add_column("Language")
    table.add_column("Stars", justify="right")
    table.add_column("Forks", justify="right")
    table.add_column("Description", overflow="fold")

    for repo in response.items:
        table.add_row(
            repo.full_name,
            repo.language or "",
            _format_number(repo.stargazers_count),
            _format_number(repo.forks_count),
            repo.description or "",
        )

    console.print(table)


@main.command()
@click.argument("repository")
@click.option(
    "--sort",
    "-s",
    type=click.Choice(["created", "updated", "comments"]),
    default="created",
)
@click.option("--direction", "-d", type=click.Choice(["asc", "desc"]), default="desc")
@click.option("--label", "-l", multiple=True, help="Label filter (any of)")
@click.pass_context
def issues(
    ctx: click.Context,
    repository: str,
    sort: str,
    direction: str,
    label: tuple[str, ...],
) -> None:
    """List open issues of OWNER/REPO."""
    owner, name = _split_repo(repository)
    settings = get_settings()
    filters = IssueFilterState(sort=sort, direction=direction, labels=list(label))

    async def run():
        async with open_fetcher(settings) as fetcher:
            return await fetcher.get_repo_issues(owner, name, filters)

    try:
        result = asyncio.run(run())
    except GitHubAPIError as e:
        _fail(ctx, e)
        return

    if not result:
        console.print("[yellow]No open issues[/yellow]")
        return

    table = Table(title=f"Open issues in {owner}/{name}")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Title", overflow="fold")
    table.add_column("Author")
    table.add_column("Labels")
    table.add_column("Comments", justify="right")

    for issue in result:
        table.add_row(
            str(issue.number),
            issue.title,
            issue.user.login,
            ", ".join(lbl.name for lbl in issue.labels),
            str(issue.comments),
        )

    console.print(table)


@main.command()
@click.argument("repository")
@click.option("--readme", is_flag=True, help="Also print the rendered README")
def repo(repository: str, readme: bool) -> None:
    """Show languages, labels and optionally the README of OWNER/REPO."""
    owner, name = _split_repo(repository)
    settings = get_settings()

    async def run():
        async with open_fetcher(settings) as fetcher:
            languages, labels = await asyncio.gather(
                fetcher.get_repo_languages(owner, name),
                fetcher.get_repo_labels(owner, name),
            )
            text = await fetcher.get_repository_readme(owner, name) if readme else None
            return languages, labels, text

    languages, labels, text = asyncio.run(run())

    total = sum(languages.values())
    table = Table(title=f"Languages in {owner}/{name}")
    table.add_column("Language", style="cyan")
    table.add_column("Share", justify="right")
    for lang, size in sorted(languages.items(), key=lambda kv: kv[1], reverse=True):
        share = size / total * 100 if total else 0.0
        table.add_row(lang, f"{share:.1f}%")
    console.print(table)

    if labels:
        console.print("Labels: " + ", ".join(lbl.name for lbl in labels))

    if readme:
        console.print(text or "[yellow]No README found[/yellow]")


@main.command()
@click.argument("username")
def user(username: str) -> None:
    """Show a user's profile and most starred repositories."""
    settings = get_settings()

    async def run():
        async with open_fetcher(settings) as fetcher:
            return await asyncio.gather(
                fetcher.get_user_profile(username),
                fetcher.get_user_top_repos(username),
            )

    profile, top_repos = asyncio.run(run())

    if profile is None:
        console.print("[yellow]User profile could not be found.[/yellow]")
        profile = UserProfile.placeholder(username)

    console.print(f"[bold]{profile.name or profile.login}[/bold] ({profile.html_url})")
    for label, value in (
        ("Company", profile.company),
        ("Location", profile.location),
        ("Bio", profile.bio),
    ):
        if value:
            console.print(f"  {label}: {value}")
    console.print(
        f"  {profile.followers} followers, {profile.following} following, "
        f"{profile.public_repos} public repos"
    )

    if top_repos:
        table = Table(title="Top repositories")
        table.add_column("Repository", style="cyan")
        table.add_column("Stars", justify="right")
        for item in top_repos:
            table.add_row(item.full_name, _format_number(item.stargazers_count))
        console.print(table)


@main.command()
@click.argument("token")
@click.pass_context
def login(ctx: click.Context, token: str) -> None:
    """Validate and store a GitHub personal access token."""
    settings = get_settings()
    token = token.strip()

    try:
        profile = asyncio.run(
            validate_token(token, base_url=settings.api_base_url, timeout=settings.timeout)
        )
    except GitHubAPIError as e:
        _fail(ctx, e)
        return

    CredentialHolder(StateStorage(settings.state_path)).set(token)
    console.print(f"[green]Logged in as {profile.login}[/green]")


@main.command()
def logout() -> None:
    """Forget the stored token."""
    settings = get_settings()
    CredentialHolder(StateStorage(settings.state_path)).set("")
    console.print("[green]Logged out[/green]")


@main.command()
@click.option("--clear", is_flag=True, help="Delete the search history")
def history(clear: bool) -> None:
    """Show recent searches."""
    settings = get_settings()
    search_history = SearchHistory(StateStorage(settings.state_path))

    if clear:
        search_history.clear()
        console.print("[green]Search history cleared[/green]")
        return

    entries = search_history.entries()
    if not entries:
        console.print("[yellow]No recent searches[/yellow]")
        return

    for query in entries:
        console.print(f"  {query}")


if __name__ == "__main__":
    main()
