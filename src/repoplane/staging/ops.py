"""Staging operations - effective reads and pending file mutations.

Each logical file moves through a small state machine:

    Committed-only -> Staged-Edit | Staged-Rename | Staged-Delete
    (nothing)      -> Staged-Add

Mutations only ever write StagedChange rows, except rename_folder which
rewrites committed paths directly. Every operation runs in one store
transaction: authorization first, then lookups, then the write.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Literal

import structlog
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlmodel import col, or_, select

from repoplane.core.errors import ConflictError, InvalidArgumentError
from repoplane.staging.overlay import (
    EffectiveFile,
    OverlayResolver,
    ResolvedFile,
    StagedChangeInfo,
    TreeEntry,
)
from repoplane.staging.paths import (
    DEFAULT_MAX_PATH_LENGTH,
    basename,
    is_under,
    join,
    rebase,
    validate_dir,
    validate_path,
)
from repoplane.store.models import CommittedFile, Role, StagedChange, StagedOperation

if TYPE_CHECKING:
    from sqlmodel import Session

    from repoplane.auth.context import AccessContext, Grant
    from repoplane.auth.gate import AuthorizationGate
    from repoplane.store.database import Database

logger = structlog.get_logger()

FolderRenamePolicy = Literal["reject", "allow"]


class StagingOps:
    """Effective-view reads and staging mutations for one store."""

    def __init__(
        self,
        db: Database,
        gate: AuthorizationGate,
        *,
        overlay: OverlayResolver | None = None,
        folder_rename_policy: FolderRenamePolicy = "reject",
        max_path_length: int = DEFAULT_MAX_PATH_LENGTH,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db = db
        self._gate = gate
        self._overlay = overlay or OverlayResolver()
        self._folder_rename_policy = folder_rename_policy
        self._max_path_length = max_path_length
        self._clock = clock

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_effective_file(self, ctx: AccessContext, file_id: str) -> EffectiveFile:
        """Read one file through the overlay.

        Raises:
            AccessDeniedError: Caller is not at least a viewer.
            NotFoundError: Unknown id, or masked by a staged delete.
        """
        with self._db.session() as session:
            grant = self._gate.require(session, ctx, Role.VIEWER)
            result = self._overlay.effective_file(session, ctx.project_id, file_id)
        self._gate.record_use(grant)
        return result

    def list_effective_tree(
        self, ctx: AccessContext, repo_id: str, path_prefix: str | None = None
    ) -> list[TreeEntry]:
        """List a repository as if all staged changes were committed."""
        with self._db.session() as session:
            grant = self._gate.require(session, ctx, Role.VIEWER)
            prefix = self._dir(path_prefix) if path_prefix else None
            self._overlay.repository(session, ctx.project_id, repo_id)
            result = self._overlay.tree(session, repo_id, prefix)
        self._gate.record_use(grant)
        return result

    def list_staged_changes(self, ctx: AccessContext, repo_id: str) -> list[StagedChangeInfo]:
        """Pending rows of a repository, oldest first."""
        with self._db.session() as session:
            grant = self._gate.require(session, ctx, Role.VIEWER)
            self._overlay.repository(session, ctx.project_id, repo_id)
            result = self._overlay.staged_changes(session, repo_id)
        self._gate.record_use(grant)
        return result

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_file(
        self,
        ctx: AccessContext,
        repo_id: str,
        path: str,
        content: str = "",
        *,
        is_binary: bool = False,
    ) -> StagedChangeInfo:
        """Stage a new file.

        Raises:
            ConflictError: path is held by a committed file or a staging row.
        """
        with self._db.immediate_transaction() as session:
            grant = self._gate.require(session, ctx, Role.EDITOR)
            path = self._path(path)
            self._overlay.repository(session, ctx.project_id, repo_id)
            if (
                self._overlay.committed_at(session, repo_id, path) is not None
                or self._overlay.staged_at(session, repo_id, path) is not None
            ):
                raise ConflictError.path_exists(path)
            now = self._clock()
            row = StagedChange(
                repo_id=repo_id,
                project_id=ctx.project_id,
                file_path=path,
                operation=StagedOperation.ADD.value,
                old_content=None,
                new_content=content,
                is_binary=is_binary,
                created_by=grant.actor,
                updated_by=grant.actor,
                created_at=now,
                updated_at=now,
            )
            info = self._write(session, row)
        self._finish(grant, "create", info)
        return info

    def edit_file(self, ctx: AccessContext, file_id: str, content: str) -> StagedChangeInfo:
        """Stage new content for a file.

        An existing staging row is updated in place and keeps its kind.
        """
        with self._db.immediate_transaction() as session:
            grant = self._gate.require(session, ctx, Role.EDITOR)
            resolved = self._overlay.resolve(session, ctx.project_id, file_id)
            now = self._clock()
            row = resolved.staged
            if row is not None:
                row.new_content = content
                self._touch(row, grant, now)
            else:
                committed = self._committed(resolved)
                row = StagedChange(
                    repo_id=committed.repo_id,
                    project_id=ctx.project_id,
                    file_path=committed.path,
                    operation=StagedOperation.EDIT.value,
                    old_content=committed.content,
                    new_content=content,
                    is_binary=committed.is_binary,
                    created_by=grant.actor,
                    updated_by=grant.actor,
                    created_at=now,
                    updated_at=now,
                )
            info = self._write(session, row)
        self._finish(grant, "edit", info)
        return info

    def delete_file(self, ctx: AccessContext, file_id: str) -> StagedChangeInfo | None:
        """Stage a deletion.

        A file that only exists as a staged add is unstaged entirely and
        None is returned. Otherwise the file's staging row becomes a
        delete marker; a rename lineage keeps its old_path so the original
        committed path stays masked.
        """
        with self._db.immediate_transaction() as session:
            grant = self._gate.require(session, ctx, Role.EDITOR)
            resolved = self._overlay.resolve(session, ctx.project_id, file_id)
            now = self._clock()
            row = resolved.staged
            removed_path = None
            if resolved.is_staged_add:
                assert row is not None
                session.delete(row)
                session.flush()
                removed_path = row.file_path
                info = None
            elif row is not None:
                row.operation = StagedOperation.DELETE.value
                row.new_content = None
                self._touch(row, grant, now)
                info = self._write(session, row)
            else:
                committed = self._committed(resolved)
                row = StagedChange(
                    repo_id=committed.repo_id,
                    project_id=ctx.project_id,
                    file_path=committed.path,
                    operation=StagedOperation.DELETE.value,
                    old_content=committed.content,
                    new_content=None,
                    is_binary=committed.is_binary,
                    created_by=grant.actor,
                    updated_by=grant.actor,
                    created_at=now,
                    updated_at=now,
                )
                info = self._write(session, row)
        self._gate.record_use(grant)
        if info is None:
            logger.info(
                "staged_add_discarded",
                project_id=ctx.project_id,
                file_id=file_id,
                path=removed_path,
                actor=grant.actor,
            )
        else:
            self._log_write("delete", grant, info)
        return info

    def rename_file(
        self, ctx: AccessContext, file_id: str, new_path: str
    ) -> StagedChangeInfo | None:
        """Stage a rename, preserving the lineage's original path and content.

        Returns None only when renaming an unstaged file onto its own path.

        Raises:
            ConflictError: new_path is already taken.
        """
        with self._db.immediate_transaction() as session:
            grant = self._gate.require(session, ctx, Role.EDITOR)
            new_path = self._path(new_path)
            resolved = self._overlay.resolve(session, ctx.project_id, file_id)
            info = self._rename(session, grant, resolved, new_path)
        self._finish(grant, "rename", info)
        return info

    def move_file(
        self, ctx: AccessContext, file_id: str, target_dir: str
    ) -> StagedChangeInfo | None:
        """Rename a file into target_dir, keeping its base name. '' is the root."""
        with self._db.immediate_transaction() as session:
            grant = self._gate.require(session, ctx, Role.EDITOR)
            target_dir = self._dir(target_dir)
            resolved = self._overlay.resolve(session, ctx.project_id, file_id)
            new_path = self._path(join(target_dir, basename(resolved.path)))
            info = self._rename(session, grant, resolved, new_path)
        self._finish(grant, "move", info)
        return info

    def rename_folder(
        self, ctx: AccessContext, repo_id: str, old_prefix: str, new_prefix: str
    ) -> int:
        """Rewrite committed paths under old_prefix to new_prefix.

        Requires owner. Matches old_prefix itself and everything under
        old_prefix + "/". Staging rows whose path or origin lies in the
        folder are rebased with it, so pending edits keep their lineage.

        Returns:
            Number of committed files rewritten.

        Raises:
            InvalidArgumentError: Malformed prefixes, or new_prefix inside old_prefix.
            ConflictError: A target path is taken, or staged changes exist
                under either folder while the policy is 'reject'.
        """
        with self._db.immediate_transaction() as session:
            grant = self._gate.require(session, ctx, Role.OWNER)
            old_prefix = self._path(old_prefix)
            new_prefix = self._path(new_prefix)
            self._overlay.repository(session, ctx.project_id, repo_id)
            if old_prefix == new_prefix:
                return 0
            if is_under(new_prefix, old_prefix):
                raise InvalidArgumentError.invalid("new_prefix", "inside old_prefix")

            moving = list(
                session.exec(
                    select(CommittedFile).where(
                        CommittedFile.repo_id == repo_id,
                        or_(
                            CommittedFile.path == old_prefix,
                            col(CommittedFile.path).startswith(old_prefix + "/", autoescape=True),
                        ),
                    )
                ).all()
            )
            if not moving:
                return 0

            pending = self._pending_under(session, repo_id, (old_prefix, new_prefix))
            if pending:
                if self._folder_rename_policy == "reject":
                    raise ConflictError.pending_changes(old_prefix, pending)
                logger.warning(
                    "folder_rename_over_staged_changes",
                    project_id=ctx.project_id,
                    repo_id=repo_id,
                    old_prefix=old_prefix,
                    paths=pending,
                )

            # Staging rows follow the folder: their paths and their origins
            carried = [
                row
                for row in session.exec(
                    select(StagedChange).where(StagedChange.repo_id == repo_id)
                ).all()
                if is_under(row.file_path, old_prefix)
                or (row.old_path is not None and is_under(row.old_path, old_prefix))
            ]
            carried_ids = {row.id for row in carried}
            moving_ids = {cf.id for cf in moving}
            targets = {cf.id: rebase(cf.path, old_prefix, new_prefix) for cf in moving}
            staged_targets = {
                row.id: rebase(row.file_path, old_prefix, new_prefix)
                for row in carried
                if is_under(row.file_path, old_prefix)
            }
            for target in [*targets.values(), *staged_targets.values()]:
                existing = self._overlay.committed_at(session, repo_id, target)
                if existing is not None and existing.id not in moving_ids:
                    raise ConflictError.path_exists(target)
                staged_row = self._overlay.staged_at(session, repo_id, target)
                if staged_row is not None and staged_row.id not in carried_ids:
                    raise ConflictError.path_exists(target)

            now = self._clock()
            try:
                # Park on NUL-prefixed paths first; targets may equal paths still moving
                for cf in moving:
                    cf.path = "\0" + cf.id
                    session.add(cf)
                for row in carried:
                    if row.id in staged_targets:
                        row.file_path = "\0" + row.id
                        session.add(row)
                session.flush()
                for cf in moving:
                    cf.path = targets[cf.id]
                    cf.updated_at = now
                for row in carried:
                    if row.id in staged_targets:
                        row.file_path = staged_targets[row.id]
                    if row.old_path is not None and is_under(row.old_path, old_prefix):
                        row.old_path = rebase(row.old_path, old_prefix, new_prefix)
                    self._touch(row, grant, now)
                session.flush()
            except IntegrityError as e:
                raise ConflictError.path_exists(new_prefix) from e
            count = len(moving)

        self._gate.record_use(grant)
        logger.info(
            "folder_renamed",
            project_id=ctx.project_id,
            repo_id=repo_id,
            old_prefix=old_prefix,
            new_prefix=new_prefix,
            count=count,
            actor=grant.actor,
        )
        return count

    def unstage_file(self, ctx: AccessContext, repo_id: str, path: str) -> int:
        """Drop the staging row at path. Returns rows removed (0 or 1)."""
        return self.unstage_files(ctx, repo_id, [path])

    def unstage_files(self, ctx: AccessContext, repo_id: str, paths: Iterable[str]) -> int:
        """Drop staging rows at the given paths. Returns rows removed."""
        with self._db.immediate_transaction() as session:
            grant = self._gate.require(session, ctx, Role.EDITOR)
            checked = [self._path(p) for p in paths]
            self._overlay.repository(session, ctx.project_id, repo_id)
            if not checked:
                count = 0
            else:
                result = session.exec(  # type: ignore[call-overload]
                    delete(StagedChange).where(
                        col(StagedChange.repo_id) == repo_id,
                        col(StagedChange.file_path).in_(checked),
                    )
                )
                count = result.rowcount
        self._gate.record_use(grant)
        logger.info("files_unstaged", project_id=ctx.project_id, repo_id=repo_id, count=count)
        return count

    def discard_staged(self, ctx: AccessContext, repo_id: str) -> int:
        """Drop every staging row of a repository. Returns rows removed."""
        with self._db.immediate_transaction() as session:
            grant = self._gate.require(session, ctx, Role.EDITOR)
            self._overlay.repository(session, ctx.project_id, repo_id)
            result = session.exec(  # type: ignore[call-overload]
                delete(StagedChange).where(col(StagedChange.repo_id) == repo_id)
            )
            count = result.rowcount
        self._gate.record_use(grant)
        logger.info("staging_discarded", project_id=ctx.project_id, repo_id=repo_id, count=count)
        return count

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _rename(
        self, session: Session, grant: Grant, resolved: ResolvedFile, new_path: str
    ) -> StagedChangeInfo | None:
        row = resolved.staged
        if new_path == resolved.path:
            return StagedChangeInfo.from_row(row) if row is not None else None
        if self._overlay.path_occupied(session, resolved.repo_id, new_path):
            raise ConflictError.path_exists(new_path)
        # A staged add may not land on any committed path, live or renamed away
        if resolved.is_staged_add and self._overlay.committed_at(
            session, resolved.repo_id, new_path
        ):
            raise ConflictError.path_exists(new_path)

        now = self._clock()
        if row is not None:
            row.file_path = new_path
            if row.operation != StagedOperation.ADD.value:
                committed = self._committed(resolved)
                row.operation = StagedOperation.RENAME.value
                # Never overwrite an already recorded origin
                if row.old_path is None:
                    row.old_path = committed.path
                if row.old_content is None:
                    row.old_content = committed.content
                if row.new_content is None:
                    row.new_content = resolved.content
            self._touch(row, grant, now)
            return self._write(session, row)

        committed = self._committed(resolved)
        row = StagedChange(
            repo_id=committed.repo_id,
            project_id=grant.project_id,
            file_path=new_path,
            old_path=committed.path,
            operation=StagedOperation.RENAME.value,
            old_content=committed.content,
            new_content=committed.content,
            is_binary=committed.is_binary,
            created_by=grant.actor,
            updated_by=grant.actor,
            created_at=now,
            updated_at=now,
        )
        return self._write(session, row)

    def _pending_under(
        self, session: Session, repo_id: str, prefixes: tuple[str, ...]
    ) -> list[str]:
        rows = session.exec(select(StagedChange).where(StagedChange.repo_id == repo_id)).all()
        hits = set()
        for row in rows:
            for prefix in prefixes:
                if is_under(row.file_path, prefix) or (
                    row.old_path is not None and is_under(row.old_path, prefix)
                ):
                    hits.add(row.file_path)
        return sorted(hits)

    @staticmethod
    def _committed(resolved: ResolvedFile) -> CommittedFile:
        assert resolved.committed is not None
        return resolved.committed

    @staticmethod
    def _touch(row: StagedChange, grant: Grant, now: float) -> None:
        row.updated_by = grant.actor
        row.updated_at = now

    @staticmethod
    def _write(session: Session, row: StagedChange) -> StagedChangeInfo:
        session.add(row)
        try:
            session.flush()
        except IntegrityError as e:
            raise ConflictError.duplicate_staging_row(row.repo_id, row.file_path) from e
        return StagedChangeInfo.from_row(row)

    def _path(self, path: str) -> str:
        return validate_path(path, max_length=self._max_path_length)

    def _dir(self, path: str) -> str:
        return validate_dir(path, max_length=self._max_path_length)

    def _finish(self, grant: Grant, action: str, info: StagedChangeInfo | None) -> None:
        self._gate.record_use(grant)
        if info is not None:
            self._log_write(action, grant, info)

    @staticmethod
    def _log_write(action: str, grant: Grant, info: StagedChangeInfo) -> None:
        logger.info(
            "staged_change_written",
            action=action,
            project_id=grant.project_id,
            repo_id=info.repo_id,
            path=info.file_path,
            old_path=info.old_path,
            operation=info.operation.value,
            actor=grant.actor,
        )
