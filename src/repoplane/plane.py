"""RepoPlane facade.

Wires the store, the authorization gate, the staging handlers and project
administration together from one RepoPlaneConfig. Every method takes an
explicit AccessContext (except create_project, which takes the creating
identity).
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from pathlib import Path

from repoplane.auth.context import AccessContext
from repoplane.auth.gate import AuthorizationGate
from repoplane.config.loader import get_db_path, load_config
from repoplane.config.models import RepoPlaneConfig
from repoplane.projects.ops import (
    DeletionReport,
    ProjectAdmin,
    ProjectInfo,
    RepositoryInfo,
    TokenInfo,
)
from repoplane.staging.ops import StagingOps
from repoplane.staging.overlay import EffectiveFile, StagedChangeInfo, TreeEntry
from repoplane.store.database import Database
from repoplane.store.models import Role


class RepoPlane:
    """Authorization plus staging overlay over one SQLite store."""

    def __init__(
        self,
        db: Database,
        config: RepoPlaneConfig | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.db = db
        self.config = config or RepoPlaneConfig()
        self.gate = AuthorizationGate(
            db, touch_timeout_ms=self.config.database.touch_timeout_ms, clock=clock
        )
        self.staging = StagingOps(
            db,
            self.gate,
            folder_rename_policy=self.config.staging.folder_rename_policy,
            max_path_length=self.config.staging.max_path_length,
            clock=clock,
        )
        self.projects = ProjectAdmin(
            db,
            self.gate,
            default_token_role=self.config.tokens.default_token_role,
            default_token_label=self.config.tokens.default_token_label,
            clock=clock,
        )

    @classmethod
    def open(cls, root: Path, config: RepoPlaneConfig | None = None) -> RepoPlane:
        """Open (creating if needed) the store for a project root."""
        config = config or load_config(root)
        db = Database.from_config(get_db_path(root, config), config.database)
        db.create_all()
        return cls(db, config)

    def close(self) -> None:
        self.db.dispose()

    # Authorization

    def authorize(self, ctx: AccessContext) -> Role:
        with self.db.session() as session:
            grant = self.gate.authorize(session, ctx)
        self.gate.record_use(grant)
        return grant.role

    def require(self, ctx: AccessContext, min_role: Role | str) -> Role:
        with self.db.session() as session:
            grant = self.gate.require(session, ctx, min_role)
        self.gate.record_use(grant)
        return grant.role

    # Effective views

    def get_effective_file(self, ctx: AccessContext, file_id: str) -> EffectiveFile:
        return self.staging.get_effective_file(ctx, file_id)

    def list_effective_tree(
        self, ctx: AccessContext, repo_id: str, path_prefix: str | None = None
    ) -> list[TreeEntry]:
        return self.staging.list_effective_tree(ctx, repo_id, path_prefix)

    def list_staged_changes(self, ctx: AccessContext, repo_id: str) -> list[StagedChangeInfo]:
        return self.staging.list_staged_changes(ctx, repo_id)

    # Staging mutations

    def create_file(
        self,
        ctx: AccessContext,
        repo_id: str,
        path: str,
        content: str = "",
        *,
        is_binary: bool = False,
    ) -> StagedChangeInfo:
        return self.staging.create_file(ctx, repo_id, path, content, is_binary=is_binary)

    def edit_file(self, ctx: AccessContext, file_id: str, content: str) -> StagedChangeInfo:
        return self.staging.edit_file(ctx, file_id, content)

    def delete_file(self, ctx: AccessContext, file_id: str) -> StagedChangeInfo | None:
        return self.staging.delete_file(ctx, file_id)

    def rename_file(
        self, ctx: AccessContext, file_id: str, new_path: str
    ) -> StagedChangeInfo | None:
        return self.staging.rename_file(ctx, file_id, new_path)

    def move_file(
        self, ctx: AccessContext, file_id: str, target_dir: str
    ) -> StagedChangeInfo | None:
        return self.staging.move_file(ctx, file_id, target_dir)

    def rename_folder(
        self, ctx: AccessContext, repo_id: str, old_prefix: str, new_prefix: str
    ) -> int:
        return self.staging.rename_folder(ctx, repo_id, old_prefix, new_prefix)

    def unstage_file(self, ctx: AccessContext, repo_id: str, path: str) -> int:
        return self.staging.unstage_file(ctx, repo_id, path)

    def unstage_files(self, ctx: AccessContext, repo_id: str, paths: Iterable[str]) -> int:
        return self.staging.unstage_files(ctx, repo_id, paths)

    def discard_staged(self, ctx: AccessContext, repo_id: str) -> int:
        return self.staging.discard_staged(ctx, repo_id)

    # Administration

    def create_project(self, identity: str, name: str) -> tuple[ProjectInfo, str]:
        return self.projects.create_project(identity, name)

    def create_repository(self, ctx: AccessContext, name: str) -> RepositoryInfo:
        return self.projects.create_repository(ctx, name)

    def list_repositories(self, ctx: AccessContext) -> list[RepositoryInfo]:
        return self.projects.list_repositories(ctx)

    def delete_project(self, ctx: AccessContext) -> DeletionReport:
        return self.projects.delete_project(ctx)

    def create_token(
        self,
        ctx: AccessContext,
        role: Role | str,
        label: str | None = None,
        expires_at: float | None = None,
    ) -> tuple[TokenInfo, str]:
        return self.projects.create_token(ctx, role, label, expires_at)

    def list_tokens(self, ctx: AccessContext) -> list[TokenInfo]:
        return self.projects.list_tokens(ctx)

    def update_token(
        self,
        ctx: AccessContext,
        token_id: str,
        label: str | None = None,
        expires_at: float | None = None,
    ) -> TokenInfo:
        return self.projects.update_token(ctx, token_id, label, expires_at)

    def revoke_token(self, ctx: AccessContext, token_id: str) -> None:
        self.projects.revoke_token(ctx, token_id)
