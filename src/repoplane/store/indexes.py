"""Composite indexes and uniqueness constraints.

These complement the single-column indexes declared via SQLModel Field().
The unique indexes are what turn "newest of possibly many staging rows" into
"at most one staging row per (repository, path)".

Called by Database.create_all().
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import text

if TYPE_CHECKING:
    from sqlalchemy import Engine


ADDITIONAL_INDEXES = [
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_staged_changes_repo_path "
    "ON staged_changes(repo_id, file_path)",
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_committed_files_repo_path "
    "ON committed_files(repo_id, path)",
    # Lineage lookups: rows pointing back at an original committed path
    "CREATE INDEX IF NOT EXISTS idx_staged_changes_repo_old_path "
    "ON staged_changes(repo_id, old_path)",
    "CREATE INDEX IF NOT EXISTS idx_project_tokens_project_created "
    "ON project_tokens(project_id, created_at)",
]

_INDEX_NAMES = [
    "idx_staged_changes_repo_path",
    "idx_committed_files_repo_path",
    "idx_staged_changes_repo_old_path",
    "idx_project_tokens_project_created",
]


def create_additional_indexes(engine: Engine) -> None:
    """Create composite and unique indexes after the tables exist."""
    with engine.connect() as conn:
        for sql in ADDITIONAL_INDEXES:
            conn.execute(text(sql))
        conn.commit()


def drop_additional_indexes(engine: Engine) -> None:
    """Drop additional indexes (for testing/reset)."""
    with engine.connect() as conn:
        for name in _INDEX_NAMES:
            conn.execute(text(f"DROP INDEX IF EXISTS {name}"))
        conn.commit()
