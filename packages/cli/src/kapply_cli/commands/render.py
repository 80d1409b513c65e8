"""render command: list the objects a target path renders to, without applying them."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from kapply_core.errors import KapplyError
from kapply_core.rollout.manifest import build_rollout
from kapply_core.rollout.status import lookup
from kapply_core.tools import KustomizeRenderer

console = Console()


@click.command("render")
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def render_cmd(ctx, paths: tuple[str, ...]):
    """Kustomize each PATH and show the objects a rollout would apply, in order."""
    config = ctx.obj["config"] if ctx.obj else {}
    renderer = KustomizeRenderer(config.get("kustomize", "kustomize"))

    for path in paths:
        try:
            rollout = build_rollout(path, renderer.render(path))
        except KapplyError as e:
            raise click.ClickException(f"{path}: {e}")

        table = Table(title=f"{path}: {len(rollout.objects)} object(s)", show_header=True, header_style="bold cyan")
        table.add_column("#", justify="right", width=4)
        table.add_column("Kind")
        table.add_column("API Version")
        table.add_column("Namespace")
        table.add_column("Name")
        table.add_column("Tracked", justify="center")

        for i, obj in enumerate(rollout.objects, 1):
            tracked = lookup(obj.kind, obj.group) is not None
            table.add_row(
                str(i),
                obj.kind,
                obj.api_version,
                obj.name.namespace,
                obj.name.name,
                "[green]yes[/green]" if tracked else "[dim]no[/dim]",
            )

        console.print(table)
