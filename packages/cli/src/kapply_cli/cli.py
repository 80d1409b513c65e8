"""CLI entry point for kapply.

Commands:
  apply-issues    continuously roll out the newest qualifying PR or issue
  manage-issues   keep one tracking issue per merged PR up to date
  status          show the rollout status of one workload
  render          list the objects a target path renders to
"""

from __future__ import annotations

import importlib.metadata

import click

from kapply_cli.commands.apply_issues import apply_issues_cmd
from kapply_cli.commands.manage_issues import manage_issues_cmd
from kapply_cli.commands.render import render_cmd
from kapply_cli.commands.status import status_cmd


@click.group()
@click.version_option(
    version=importlib.metadata.version("kapply"),
    prog_name="kapply",
)
@click.option(
    "--config",
    "config_path",
    default=".kapply.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="KAPPLY_CONFIG",
)
@click.option("-v", "--verbose", count=True, help="-v for INFO logs, -vv for DEBUG.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: int):
    """Continuously apply merged pull requests to a cluster and report progress on GitHub."""
    from kapply_cli.auth import resolve_github_token
    from kapply_cli.log import setup_logging
    from kapply_core.config import load_config

    setup_logging(verbose)
    ctx.ensure_object(dict)

    config = load_config(config_path)

    # Resolve token early so all subcommands share the same resolution.
    token = resolve_github_token()
    if token:
        config["github_token"] = token

    ctx.obj["config"] = config


main.add_command(apply_issues_cmd)
main.add_command(manage_issues_cmd)
main.add_command(status_cmd)
main.add_command(render_cmd)
