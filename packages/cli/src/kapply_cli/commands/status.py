"""status command: show the rollout status of one workload."""

from __future__ import annotations

import click
from rich.console import Console

from kapply_core.cluster import KubectlAccessor
from kapply_core.errors import KapplyError
from kapply_core.models import DEFAULT_NAMESPACE, NamespacedName
from kapply_core.rollout.status import NOT_APPLICABLE, RolloutStatusEngine

console = Console()


@click.command("status")
@click.argument("kind")
@click.argument("name")
@click.option("--namespace", "-n", default=DEFAULT_NAMESPACE, show_default=True)
@click.option("--group", default="apps", show_default=True, help="API group of the kind.")
@click.option("--revision", type=int, default=0, help="Fail unless the Deployment is at this revision.")
@click.pass_context
def status_cmd(ctx, kind: str, name: str, namespace: str, group: str, revision: int):
    """Print whether a Deployment, DaemonSet or StatefulSet has finished rolling out.

    Exits with status 1 while the rollout is still in progress.
    """
    config = ctx.obj["config"] if ctx.obj else {}
    engine = RolloutStatusEngine(KubectlAccessor(config.get("kubectl", "kubectl")))
    target = NamespacedName(namespace=namespace, name=name)

    try:
        message, done = engine.status_for(kind, target, revision, group)
    except KapplyError as e:
        raise click.ClickException(str(e))

    if message == NOT_APPLICABLE:
        console.print(f"[dim]{kind} has no rollout status.[/dim]")
        return
    color = "green" if done else "yellow"
    console.print(f"[{color}]{message}[/{color}]")
    if not done:
        ctx.exit(1)
