"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages,
and provides the shared store fixtures.
"""

from __future__ import annotations

import sys
import tempfile
from collections.abc import Callable, Generator
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local repoplane package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of repoplane modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("repoplane"):
        del sys.modules[module_name]

if TYPE_CHECKING:
    from repoplane.auth.context import AccessContext
    from repoplane.plane import RepoPlane
    from repoplane.store.database import Database

OWNER = "alice"
OUTSIDER = "mallory"


class FakeClock:
    """Deterministic clock. Every read advances time by step seconds."""

    def __init__(self, start: float = 1_700_000_000.0, step: float = 1.0) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class Seeded:
    """A project with one repository and one caller per role."""

    project_id: str
    repo_id: str
    owner: AccessContext
    editor: AccessContext
    viewer: AccessContext
    editor_token: str
    viewer_token: str


@pytest.fixture(autouse=True)
def _reset_structlog() -> Generator[None, None, None]:
    """Undo configure_logging() calls made by a test."""
    import logging

    import structlog

    root = logging.getLogger()
    before = list(root.handlers)
    yield
    structlog.reset_defaults()
    for handler in list(root.handlers):
        if handler not in before:
            root.removeHandler(handler)
            handler.close()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory(ignore_cleanup_errors=True) as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_db(temp_dir: Path) -> Generator[Database, None, None]:
    """Create a temporary database with schema."""
    from repoplane.store.database import Database

    db = Database(temp_dir / "test.db")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def plane(temp_db: Database, clock: FakeClock) -> RepoPlane:
    from repoplane.plane import RepoPlane

    return RepoPlane(temp_db, clock=clock)


@pytest.fixture
def seeded(plane: RepoPlane) -> Seeded:
    from repoplane.auth.context import AccessContext

    info, editor_token = plane.create_project(OWNER, "Demo")
    owner = AccessContext(project_id=info.id, identity=OWNER)
    repo = plane.create_repository(owner, "main")
    _, viewer_token = plane.create_token(owner, "viewer", label="Read only")
    return Seeded(
        project_id=info.id,
        repo_id=repo.id,
        owner=owner,
        editor=AccessContext(project_id=info.id, token=editor_token),
        viewer=AccessContext(project_id=info.id, token=viewer_token),
        editor_token=editor_token,
        viewer_token=viewer_token,
    )


@pytest.fixture
def commit_file(temp_db: Database) -> Callable[..., str]:
    """Insert a committed file the way the external commit pipeline would."""
    from repoplane.store.models import CommittedFile

    def _commit(
        repo_id: str,
        path: str,
        content: str = "",
        *,
        is_binary: bool = False,
        sha: str | None = "0" * 40,
    ) -> str:
        with temp_db.session() as session:
            row = CommittedFile(
                repo_id=repo_id,
                path=path,
                content=content,
                is_binary=is_binary,
                last_commit_sha=sha,
            )
            session.add(row)
            session.commit()
            return row.id

    return _commit
