"""rpl tree / show commands - effective views."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from repoplane.cli.utils import build_context, caller_options, open_plane


@click.command()
@click.argument("project_id")
@click.argument("repo_id")
@click.option("--prefix", default=None, help="Only paths under this folder")
@click.option("--plain", is_flag=True, help="One path per line, no table")
@caller_options
@click.pass_context
def tree_command(
    ctx: click.Context,
    project_id: str,
    repo_id: str,
    prefix: str | None,
    plain: bool,
    identity: str | None,
    token: str | None,
) -> None:
    """List REPO_ID as if all staged changes were committed."""
    access = build_context(project_id, identity, token)
    with open_plane(ctx.obj) as plane:
        entries = plane.list_effective_tree(access, repo_id, prefix)

    if plain:
        for entry in entries:
            click.echo(entry.path)
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Path")
    table.add_column("Source")
    table.add_column("Op")
    table.add_column("File ID")
    for entry in entries:
        op = entry.operation.value if entry.operation else ""
        table.add_row(entry.path, entry.source, op, entry.content_ref)
    Console().print(table)


@click.command()
@click.argument("project_id")
@click.argument("file_id")
@caller_options
@click.pass_context
def show_command(
    ctx: click.Context, project_id: str, file_id: str, identity: str | None, token: str | None
) -> None:
    """Print the effective content of FILE_ID."""
    access = build_context(project_id, identity, token)
    with open_plane(ctx.obj) as plane:
        f = plane.get_effective_file(access, file_id)
    if f.is_binary:
        click.echo(f"{f.path}: binary file ({f.source})", err=True)
        return
    click.echo(f.content or "", nl=False)
