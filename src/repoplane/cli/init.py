"""rpl init command - create the store and a config template."""

from pathlib import Path

import click

from repoplane.config.loader import get_db_path, load_config, write_config_template
from repoplane.core.errors import ConfigError
from repoplane.store.database import Database


def initialize_root(root: Path) -> Path:
    """Write .repoplane/config.yaml (if absent) and create all tables.

    Returns the database path.
    """
    write_config_template(root)
    config = load_config(root)
    db_path = get_db_path(root, config)
    db = Database.from_config(db_path, config.database)
    try:
        db.create_all()
    finally:
        db.dispose()
    return db_path


@click.command()
@click.argument("path", default=".", type=click.Path(file_okay=False, path_type=Path))
def init_command(path: Path) -> None:
    """Initialize RepoPlane in PATH (default: current directory)."""
    root = path.resolve()
    root.mkdir(parents=True, exist_ok=True)
    try:
        db_path = initialize_root(root)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Initialized RepoPlane in {root}")
    click.echo(f"Database: {db_path}")
