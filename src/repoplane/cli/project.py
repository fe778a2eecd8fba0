"""rpl project / repo / token commands - administration."""

from __future__ import annotations

from datetime import datetime

import click
from rich.console import Console
from rich.table import Table

from repoplane.cli.utils import build_context, caller_options, open_plane
from repoplane.store.models import Role


@click.group()
def project_group() -> None:
    """Manage projects."""


@project_group.command("create")
@click.argument("name")
@click.option("--user", "identity", required=True, help="Identity that will own the project")
@click.pass_context
def project_create(ctx: click.Context, name: str, identity: str) -> None:
    """Create a project and print its default token."""
    with open_plane(ctx.obj) as plane:
        info, raw = plane.create_project(identity, name)
    click.echo(f"Project: {info.id}")
    click.echo(f"Default token: {raw}")
    click.echo("Store the token now; it cannot be shown again.")


@project_group.command("delete")
@click.argument("project_id")
@caller_options
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
def project_delete(
    ctx: click.Context, project_id: str, identity: str | None, token: str | None, yes: bool
) -> None:
    """Delete a project and all of its data."""
    access = build_context(project_id, identity, token)
    if not yes:
        click.confirm(f"Permanently delete project {project_id}?", abort=True)
    with open_plane(ctx.obj) as plane:
        report = plane.delete_project(access)
    click.echo(
        f"Deleted project {report.project_id}: {report.repositories} repositories, "
        f"{report.committed_files} files, {report.staged_changes} staged changes, "
        f"{report.tokens} tokens"
    )


@click.group()
def repo_group() -> None:
    """Manage repositories."""


@repo_group.command("create")
@click.argument("project_id")
@click.argument("name")
@caller_options
@click.pass_context
def repo_create(
    ctx: click.Context, project_id: str, name: str, identity: str | None, token: str | None
) -> None:
    """Create a repository in PROJECT_ID."""
    access = build_context(project_id, identity, token)
    with open_plane(ctx.obj) as plane:
        info = plane.create_repository(access, name)
    click.echo(f"Repository: {info.id}")


@repo_group.command("list")
@click.argument("project_id")
@caller_options
@click.pass_context
def repo_list(ctx: click.Context, project_id: str, identity: str | None, token: str | None) -> None:
    """List repositories of PROJECT_ID."""
    access = build_context(project_id, identity, token)
    with open_plane(ctx.obj) as plane:
        repos = plane.list_repositories(access)
    for repo in repos:
        click.echo(f"{repo.id}  {repo.name}")


@click.group()
def token_group() -> None:
    """Manage project tokens."""


@token_group.command("create")
@click.argument("project_id")
@click.option(
    "--role",
    type=click.Choice([Role.VIEWER.value, Role.EDITOR.value]),
    default=Role.VIEWER.value,
    show_default=True,
)
@click.option("--label", default=None)
@caller_options
@click.pass_context
def token_create(
    ctx: click.Context,
    project_id: str,
    role: str,
    label: str | None,
    identity: str | None,
    token: str | None,
) -> None:
    """Mint a token for PROJECT_ID (owner only)."""
    access = build_context(project_id, identity, token)
    with open_plane(ctx.obj) as plane:
        info, raw = plane.create_token(access, role, label=label)
    click.echo(f"Token id: {info.id}")
    click.echo(f"Token: {raw}")


@token_group.command("list")
@click.argument("project_id")
@caller_options
@click.pass_context
def token_list(
    ctx: click.Context, project_id: str, identity: str | None, token: str | None
) -> None:
    """List tokens of PROJECT_ID (owner only)."""
    access = build_context(project_id, identity, token)
    with open_plane(ctx.obj) as plane:
        tokens = plane.list_tokens(access)

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID")
    table.add_column("Prefix")
    table.add_column("Role")
    table.add_column("Label")
    table.add_column("Expires")
    for t in tokens:
        expires = "-"
        if t.expires_at:
            expires = datetime.fromtimestamp(t.expires_at).isoformat(" ", "seconds")
        table.add_row(t.id, t.token_prefix, t.role.value, t.label or "", expires)
    Console().print(table)


@token_group.command("revoke")
@click.argument("project_id")
@click.argument("token_id")
@caller_options
@click.pass_context
def token_revoke(
    ctx: click.Context, project_id: str, token_id: str, identity: str | None, token: str | None
) -> None:
    """Revoke TOKEN_ID (owner only)."""
    access = build_context(project_id, identity, token)
    with open_plane(ctx.obj) as plane:
        plane.revoke_token(access, token_id)
    click.echo(f"Revoked {token_id}")
