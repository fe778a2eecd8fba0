"""Relational store: table models and the SQLite database wrapper."""

from repoplane.store.database import Database
from repoplane.store.indexes import create_additional_indexes, drop_additional_indexes
from repoplane.store.models import (
    CommittedFile,
    Project,
    ProjectToken,
    Repository,
    Role,
    StagedChange,
    StagedOperation,
    new_id,
)

__all__ = [
    "Database",
    "create_additional_indexes",
    "drop_additional_indexes",
    "Project",
    "ProjectToken",
    "Repository",
    "CommittedFile",
    "StagedChange",
    "Role",
    "StagedOperation",
    "new_id",
]
