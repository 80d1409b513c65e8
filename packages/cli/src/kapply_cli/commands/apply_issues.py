"""apply-issues command: continuously roll out the newest qualifying PR or issue."""

from __future__ import annotations

import click
from rich.console import Console

from kapply_core.applier import ApplyOrchestrator
from kapply_core.cluster import KubectlAccessor
from kapply_core.config import apply_settings, match_criteria, repo_ref, validate_apply_config
from kapply_core.errors import ConfigError
from kapply_core.gh.issues import get_repo
from kapply_core.git import WorkingCopy
from kapply_core.rollout.status import RolloutStatusEngine
from kapply_core.runner import ContinuousApplier
from kapply_core.sync import SourceSync
from kapply_core.tools import KubectlApplier, KustomizeRenderer

console = Console()

_ACTION_KEYS = ("add_labels", "remove_labels", "add_assignees", "remove_assignees")


def _override(config: dict, section: str | None, key: str, value) -> None:
    """Set config[section][key] (or config[key]) unless the option was left unset."""
    if value is None or value == ():
        return
    if isinstance(value, tuple):
        value = list(value)
    if section is None:
        config[key] = value
        return
    config[section] = {**(config.get(section) or {}), key: value}


def build_applier(config: dict) -> ContinuousApplier:
    """Wire the continuous-apply loop from a validated config dict."""
    ref = repo_ref(config)
    token = config["github_token"]
    repo = get_repo(ref.full_name, token=token)
    working_copy = WorkingCopy(ref, token=token, workdir=config.get("workdir", "."), git=config.get("git", "git"))
    source_sync = SourceSync(
        repo,
        working_copy,
        criteria=match_criteria(config.get("match")),
        mode=config.get("sync_type", "issue"),
        branch=config.get("branch", "master"),
    )
    kubectl = config.get("kubectl", "kubectl")
    orchestrator = ApplyOrchestrator(
        working_copy,
        KustomizeRenderer(config.get("kustomize", "kustomize"), cwd=working_copy.path),
        KubectlApplier(kubectl, cwd=working_copy.path),
        RolloutStatusEngine(KubectlAccessor(kubectl)),
        apply_settings(config),
    )
    return ContinuousApplier(source_sync, orchestrator, interval=float(config.get("poll_interval", 30)))


@click.command("apply-issues")
@click.option("--owner", default=None, help="GitHub user or org.")
@click.option("--repo", default=None, help="GitHub repo.")
@click.option("--name", default=None, help="Name of the rollout.")
@click.option("--user", default=None, help="GitHub login kapply acts as.")
@click.option("--apply-targets", "targets", multiple=True, help="Path to kustomize and apply (repeatable).")
@click.option("--sync-type", type=click.Choice(["issue", "pr"]), default=None, help="Match issues or merged PRs.")
@click.option(
    "--rollout-type",
    type=click.Choice(["sequential", "parallel"]),
    default=None,
    help="Roll targets out one at a time or all together.",
)
@click.option("--match-labels", multiple=True, help="Only apply issues/PRs with these labels.")
@click.option("--match-assignee", default=None)
@click.option("--match-milestone", default=None)
@click.option("--match-state", default=None)
@click.option("--before-add-labels", multiple=True, help="Labels to add before starting a rollout.")
@click.option("--before-remove-labels", multiple=True, help="Labels to remove before starting a rollout.")
@click.option("--before-add-assignees", multiple=True, help="Assignees to add before starting a rollout.")
@click.option("--before-remove-assignees", multiple=True, help="Assignees to remove before starting a rollout.")
@click.option("--before-set-state", default=None, help="Issue state to set before starting a rollout.")
@click.option("--after-add-labels", multiple=True, help="Labels to add after completing a rollout.")
@click.option("--after-remove-labels", multiple=True, help="Labels to remove after completing a rollout.")
@click.option("--after-add-assignees", multiple=True, help="Assignees to add after completing a rollout.")
@click.option("--after-remove-assignees", multiple=True, help="Assignees to remove after completing a rollout.")
@click.option("--after-set-state", default=None, help="Issue state to set after completing a rollout.")
@click.option("--pause", type=float, default=None, help="Seconds between rollout status checks.")
@click.option("--max-cycles", type=int, default=None, hidden=True)
@click.pass_context
def apply_issues_cmd(ctx, max_cycles: int | None, **options):
    """Watch GitHub for the newest qualifying PR or issue and roll out its commit.

    \b
    Required environment variables:
      GIT_ACCESS_TOKEN or GITHUB_TOKEN   GitHub access token (or use gh CLI)
    """
    config = dict(ctx.obj["config"])

    _override(config, "repo", "owner", options["owner"])
    _override(config, "repo", "repo", options["repo"])
    for key in ("name", "user", "targets", "sync_type", "rollout_type", "pause"):
        _override(config, None, key, options[key])
    for key in ("labels", "assignee", "milestone", "state"):
        _override(config, "match", key, options[f"match_{key}"])
    for stage in ("before", "after"):
        for key in _ACTION_KEYS:
            _override(config, f"{stage}_actions", key, options[f"{stage}_{key}"])
        _override(config, f"{stage}_actions", "set_state", options[f"{stage}_set_state"])

    try:
        validate_apply_config(config)
    except ConfigError as e:
        raise click.UsageError(str(e))
    if not config.get("github_token"):
        raise click.UsageError("No GitHub token found. Set GIT_ACCESS_TOKEN or GITHUB_TOKEN, or run `gh auth login`.")

    ref = repo_ref(config)
    console.print(f"[bold]Rolling out {ref.full_name}[/bold] as [cyan]{config['name']}[/cyan]")
    build_applier(config).run(max_cycles=max_cycles)
