"""RepoPlane CLI - rpl command."""

from pathlib import Path

import click

from repoplane.cli.files import show_command, tree_command
from repoplane.cli.init import init_command
from repoplane.cli.project import project_group, repo_group, token_group
from repoplane.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="rpl")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--root",
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory holding .repoplane/ (default: search upward from cwd)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, root: Path | None) -> None:
    """RepoPlane - token-scoped access and staged file changes."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["root"] = root
    configure_logging(level="DEBUG" if verbose else "WARNING")


cli.add_command(init_command, name="init")
cli.add_command(project_group, name="project")
cli.add_command(repo_group, name="repo")
cli.add_command(token_group, name="token")
cli.add_command(tree_command, name="tree")
cli.add_command(show_command, name="show")


if __name__ == "__main__":
    cli()
