"""Project, repository and token administration."""

from repoplane.projects.ops import (
    DeletionReport,
    ProjectAdmin,
    ProjectInfo,
    RepositoryInfo,
    TokenInfo,
)

__all__ = [
    "ProjectAdmin",
    "ProjectInfo",
    "RepositoryInfo",
    "TokenInfo",
    "DeletionReport",
]
