"""SQLModel definitions for projects, tokens, committed files and staging rows.

Single source of truth for all table schemas.

Ids are uuid4 hex strings so that committed-file ids and staged-change ids
share one namespace and a file id can be looked up in either table.
Timestamps are float epoch seconds.
"""

import time
import uuid
from enum import Enum

from sqlmodel import Field, SQLModel


def new_id() -> str:
    return uuid.uuid4().hex


# ============================================================================
# ENUMS
# ============================================================================


class Role(str, Enum):
    """Project role carried by a token or implied by ownership."""

    VIEWER = "viewer"
    EDITOR = "editor"
    OWNER = "owner"


class StagedOperation(str, Enum):
    """Kind of pending file operation recorded in a staging row."""

    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"
    RENAME = "rename"


# ============================================================================
# PROJECTS & TOKENS
# ============================================================================


class Project(SQLModel, table=True):
    """A project. Its creator is the owner, independent of any token."""

    __tablename__ = "projects"

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    created_by: str = Field(index=True)
    created_at: float = Field(default_factory=time.time)


class ProjectToken(SQLModel, table=True):
    """Bearer credential granting a role on one project.

    Only the SHA-256 of the credential is stored.
    """

    __tablename__ = "project_tokens"

    id: str = Field(default_factory=new_id, primary_key=True)
    project_id: str = Field(foreign_key="projects.id", index=True)
    token_hash: str = Field(unique=True, index=True)
    token_prefix: str
    role: str = Field(default=Role.VIEWER.value)
    label: str | None = None
    created_by: str | None = None
    created_at: float = Field(default_factory=time.time)
    expires_at: float | None = None
    last_used_at: float | None = None


# ============================================================================
# REPOSITORIES & FILES
# ============================================================================


class Repository(SQLModel, table=True):
    """Container for files within a project."""

    __tablename__ = "repositories"

    id: str = Field(default_factory=new_id, primary_key=True)
    project_id: str = Field(foreign_key="projects.id", index=True)
    name: str
    created_at: float = Field(default_factory=time.time)


class CommittedFile(SQLModel, table=True):
    """File as last written by the commit pipeline."""

    __tablename__ = "committed_files"

    id: str = Field(default_factory=new_id, primary_key=True)
    repo_id: str = Field(foreign_key="repositories.id", index=True)
    path: str = Field(index=True)
    content: str = ""
    is_binary: bool = False
    last_commit_sha: str | None = None
    updated_at: float = Field(default_factory=time.time)


class StagedChange(SQLModel, table=True):
    """One pending, uncommitted operation on a logical file.

    file_path is the current/target path. old_path is the original committed
    path of a rename lineage and is never overwritten once set.
    """

    __tablename__ = "staged_changes"

    id: str = Field(default_factory=new_id, primary_key=True)
    repo_id: str = Field(foreign_key="repositories.id", index=True)
    project_id: str = Field(foreign_key="projects.id", index=True)
    file_path: str = Field(index=True)
    old_path: str | None = Field(default=None, index=True)
    operation: str = Field(index=True)
    old_content: str | None = None
    new_content: str | None = None
    is_binary: bool = False
    created_by: str | None = None
    updated_by: str | None = None
    created_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time)
