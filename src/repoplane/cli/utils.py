"""CLI utilities."""

from __future__ import annotations

from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TypeVar

import click

from repoplane.auth.context import AccessContext
from repoplane.config.loader import CONFIG_DIR_NAME, load_config
from repoplane.core.errors import RepoPlaneError
from repoplane.core.logging import clear_request_id, configure_logging, set_request_id
from repoplane.plane import RepoPlane

F = TypeVar("F", bound=Callable[..., Any])


def find_project_root(start_path: Path | None = None) -> Path:
    """Find the directory holding .repoplane/.

    Walks up the directory tree from start_path (default: cwd).

    Raises:
        click.ClickException: If no initialized root is found
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()
    while current != current.parent:
        if (current / CONFIG_DIR_NAME).is_dir():
            return current
        current = current.parent
    if (current / CONFIG_DIR_NAME).is_dir():
        return current

    raise click.ClickException(
        f"Not inside a RepoPlane directory: {start_path}\nRun 'rpl init' first."
    )


@contextmanager
def open_plane(obj: dict[str, Any]) -> Generator[RepoPlane, None, None]:
    """Open the store for a CLI invocation and translate errors for click.

    Applies the logging section of the loaded config; --verbose forces DEBUG.
    """
    root = find_project_root(obj.get("root"))
    set_request_id()
    try:
        config = load_config(root)
        configure_logging(config=config.logging, level="DEBUG" if obj.get("verbose") else None)
        plane = RepoPlane.open(root, config)
    except RepoPlaneError as e:
        clear_request_id()
        raise click.ClickException(str(e)) from e
    try:
        yield plane
    except RepoPlaneError as e:
        raise click.ClickException(str(e)) from e
    finally:
        plane.close()
        clear_request_id()


def caller_options(func: F) -> F:
    """Add --user / --token options identifying the caller."""
    func = click.option(
        "--token",
        envvar="REPOPLANE_TOKEN",
        default=None,
        help="Project token (or REPOPLANE_TOKEN)",
    )(func)
    func = click.option("--user", "identity", default=None, help="Authenticated identity")(func)
    return func


def build_context(project_id: str, identity: str | None, token: str | None) -> AccessContext:
    if identity is None and token is None:
        raise click.UsageError("Pass --user or --token")
    return AccessContext(project_id=project_id, identity=identity, token=token)
