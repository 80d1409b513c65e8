"""manage-issues command: keep one tracking issue per merged PR up to date."""

from __future__ import annotations

import click
from rich.console import Console

from kapply_core.config import manager_settings, repo_ref, validate_manager_config
from kapply_core.errors import ConfigError
from kapply_core.gh.issues import get_repo
from kapply_core.git import WorkingCopy
from kapply_core.manager import IssueStatusAggregator
from kapply_core.sync import PR_MODE, SourceSync

console = Console()


def build_manager(config: dict) -> IssueStatusAggregator:
    """Wire the tracking-issue loop from a validated config dict."""
    ref = repo_ref(config)
    token = config["github_token"]
    repo = get_repo(ref.full_name, token=token)
    settings = manager_settings(config)
    working_copy = WorkingCopy(ref, token=token, workdir=config.get("workdir", "."), git=config.get("git", "git"))
    source_sync = SourceSync(
        repo,
        working_copy,
        criteria=settings.open_issue,
        mode=PR_MODE,
        branch=config.get("branch", "master"),
    )
    return IssueStatusAggregator(repo, source_sync, settings)


@click.command("manage-issues")
@click.option("--max-cycles", type=int, default=None, hidden=True)
@click.pass_context
def manage_issues_cmd(ctx, max_cycles: int | None):
    """Open, close and update tracking issues for merged pull requests.

    Everything is read from the configuration file: repo, user, label,
    open_issue, open_actions and status_reporters.
    """
    config = ctx.obj["config"]
    try:
        validate_manager_config(config)
    except ConfigError as e:
        raise click.UsageError(str(e))
    if not config.get("github_token"):
        raise click.UsageError("No GitHub token found. Set GIT_ACCESS_TOKEN or GITHUB_TOKEN, or run `gh auth login`.")

    manager = build_manager(config)
    console.print(
        f"[bold]Managing issues labeled[/bold] [cyan]{manager.settings.label}[/cyan] "
        f"in {repo_ref(config).full_name} with {len(manager.settings.reporters)} reporter(s)"
    )
    manager.run(max_cycles=max_cycles)
