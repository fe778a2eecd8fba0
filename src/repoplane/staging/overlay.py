"""Staging overlay resolution.

Builds the effective, as-if-committed view of a repository by laying
StagedChange rows over CommittedFile rows. Nothing here writes.

Lineage: a staging row belongs to committed path P when its old_path is P
(a rename chain that started at P), or when it has no old_path and its
file_path is P (an edit or delete in place). When several rows belong to
the same path the most recently created one wins, ties broken by id.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from sqlmodel import and_, col, or_, select

from repoplane.core.errors import NotFoundError
from repoplane.staging.paths import is_under
from repoplane.store.models import CommittedFile, Repository, StagedChange, StagedOperation

if TYPE_CHECKING:
    from sqlmodel import Session
    from sqlmodel.sql.expression import SelectOfScalar

Source = Literal["committed", "staged"]


@dataclass(frozen=True, slots=True)
class EffectiveFile:
    """A single file as it would look once staged changes are committed."""

    id: str
    repo_id: str
    path: str
    content: str | None
    is_binary: bool
    source: Source
    last_commit_sha: str | None = None


@dataclass(frozen=True, slots=True)
class TreeEntry:
    """One row of an effective tree listing."""

    path: str
    content_ref: str  # file id accepted by get_effective_file
    is_binary: bool
    source: Source
    operation: StagedOperation | None = None


@dataclass(frozen=True, slots=True)
class StagedChangeInfo:
    """Detached snapshot of a staging row."""

    id: str
    repo_id: str
    file_path: str
    old_path: str | None
    operation: StagedOperation
    old_content: str | None
    new_content: str | None
    is_binary: bool
    created_by: str | None
    updated_by: str | None
    created_at: float
    updated_at: float

    @classmethod
    def from_row(cls, row: StagedChange) -> StagedChangeInfo:
        return cls(
            id=row.id,
            repo_id=row.repo_id,
            file_path=row.file_path,
            old_path=row.old_path,
            operation=StagedOperation(row.operation),
            old_content=row.old_content,
            new_content=row.new_content,
            is_binary=row.is_binary,
            created_by=row.created_by,
            updated_by=row.updated_by,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


@dataclass
class ResolvedFile:
    """A live file plus the rows it was resolved from.

    committed is None for files that exist only as a staged add.
    staged is None for committed files with nothing pending.
    """

    file_id: str
    repo_id: str
    path: str
    content: str | None
    is_binary: bool
    committed: CommittedFile | None
    staged: StagedChange | None

    @property
    def is_staged_add(self) -> bool:
        return (
            self.committed is None
            and self.staged is not None
            and self.staged.operation == StagedOperation.ADD.value
        )


def _newest_first(stmt: SelectOfScalar[StagedChange]) -> SelectOfScalar[StagedChange]:
    return stmt.order_by(col(StagedChange.created_at).desc(), col(StagedChange.id).desc())


def _rank(row: StagedChange) -> tuple[float, str]:
    return (row.created_at, row.id)


class OverlayResolver:
    """Session-level overlay queries. Callers handle authorization."""

    def repository(self, session: Session, project_id: str, repo_id: str) -> Repository:
        repo = session.get(Repository, repo_id)
        if repo is None or repo.project_id != project_id:
            raise NotFoundError.repository(repo_id)
        return repo

    def lineage_row(
        self, session: Session, repo_id: str, committed_path: str
    ) -> StagedChange | None:
        """Authoritative staging row for a committed path, if any."""
        stmt = select(StagedChange).where(
            StagedChange.repo_id == repo_id,
            or_(
                StagedChange.old_path == committed_path,
                and_(
                    col(StagedChange.old_path).is_(None),
                    StagedChange.file_path == committed_path,
                ),
            ),
        )
        return session.exec(_newest_first(stmt)).first()

    def committed_at(self, session: Session, repo_id: str, path: str) -> CommittedFile | None:
        return session.exec(
            select(CommittedFile).where(
                CommittedFile.repo_id == repo_id, CommittedFile.path == path
            )
        ).first()

    def staged_at(self, session: Session, repo_id: str, path: str) -> StagedChange | None:
        stmt = select(StagedChange).where(
            StagedChange.repo_id == repo_id, StagedChange.file_path == path
        )
        return session.exec(_newest_first(stmt)).first()

    def resolve(self, session: Session, project_id: str, file_id: str) -> ResolvedFile:
        """Resolve a file id to its live state within one project.

        Raises:
            NotFoundError: Unknown id, other project, or masked by a staged delete.
        """
        committed = session.get(CommittedFile, file_id)
        if committed is not None:
            repo = session.get(Repository, committed.repo_id)
            if repo is None or repo.project_id != project_id:
                raise NotFoundError.file(file_id)
            row = self.lineage_row(session, committed.repo_id, committed.path)
            return self._overlay(file_id, committed, row)

        row = session.get(StagedChange, file_id)
        if row is None or row.project_id != project_id:
            raise NotFoundError.file(file_id)
        if row.operation == StagedOperation.DELETE.value:
            raise NotFoundError.file(file_id)
        if row.operation == StagedOperation.ADD.value:
            return ResolvedFile(
                file_id=row.id,
                repo_id=row.repo_id,
                path=row.file_path,
                content=row.new_content,
                is_binary=row.is_binary,
                committed=None,
                staged=row,
            )
        # Edit/rename rows addressed by their own id: pair them with their origin
        origin = self.committed_at(session, row.repo_id, row.old_path or row.file_path)
        if origin is None:
            # Orphaned by an external commit; not part of the effective view
            raise NotFoundError.file(file_id)
        return ResolvedFile(
            file_id=row.id,
            repo_id=row.repo_id,
            path=row.file_path,
            content=row.new_content,
            is_binary=row.is_binary,
            committed=origin,
            staged=row,
        )

    def _overlay(
        self, file_id: str, committed: CommittedFile, row: StagedChange | None
    ) -> ResolvedFile:
        if row is None:
            return ResolvedFile(
                file_id=file_id,
                repo_id=committed.repo_id,
                path=committed.path,
                content=committed.content,
                is_binary=committed.is_binary,
                committed=committed,
                staged=None,
            )
        if row.operation == StagedOperation.DELETE.value:
            raise NotFoundError.file(file_id)
        return ResolvedFile(
            file_id=file_id,
            repo_id=committed.repo_id,
            path=row.file_path,
            content=row.new_content,
            is_binary=row.is_binary,
            committed=committed,
            staged=row,
        )

    def effective_file(self, session: Session, project_id: str, file_id: str) -> EffectiveFile:
        resolved = self.resolve(session, project_id, file_id)
        return EffectiveFile(
            id=resolved.file_id,
            repo_id=resolved.repo_id,
            path=resolved.path,
            content=resolved.content,
            is_binary=resolved.is_binary,
            source="committed" if resolved.staged is None else "staged",
            last_commit_sha=resolved.committed.last_commit_sha if resolved.committed else None,
        )

    def tree(
        self, session: Session, repo_id: str, path_prefix: str | None = None
    ) -> list[TreeEntry]:
        """Effective file listing of a repository, sorted by path."""
        committed = list(
            session.exec(select(CommittedFile).where(CommittedFile.repo_id == repo_id)).all()
        )
        staged = list(
            session.exec(
                select(StagedChange)
                .where(StagedChange.repo_id == repo_id)
                .order_by(col(StagedChange.created_at), col(StagedChange.id))
            ).all()
        )
        committed_paths = {cf.path for cf in committed}

        # Oldest first, so later assignments leave the newest row per path
        lineage: dict[str, StagedChange] = {}
        for row in staged:
            origin = row.old_path if row.old_path is not None else row.file_path
            if origin in committed_paths:
                lineage[origin] = row

        entries: dict[str, tuple[tuple[float, str], TreeEntry]] = {}

        def put(rank: tuple[float, str], entry: TreeEntry) -> None:
            current = entries.get(entry.path)
            if current is None or rank > current[0]:
                entries[entry.path] = (rank, entry)

        for cf in committed:
            row = lineage.get(cf.path)
            if row is None:
                put(
                    (float("-inf"), ""),
                    TreeEntry(
                        path=cf.path,
                        content_ref=cf.id,
                        is_binary=cf.is_binary,
                        source="committed",
                    ),
                )
                continue
            if row.operation == StagedOperation.DELETE.value:
                continue
            put(
                _rank(row),
                TreeEntry(
                    path=row.file_path,
                    content_ref=cf.id,
                    is_binary=row.is_binary,
                    source="staged",
                    operation=StagedOperation(row.operation),
                ),
            )

        for row in staged:
            if row.operation != StagedOperation.ADD.value or row.file_path in committed_paths:
                continue
            put(
                _rank(row),
                TreeEntry(
                    path=row.file_path,
                    content_ref=row.id,
                    is_binary=row.is_binary,
                    source="staged",
                    operation=StagedOperation.ADD,
                ),
            )

        result = [entry for _, entry in entries.values()]
        if path_prefix:
            result = [e for e in result if is_under(e.path, path_prefix)]
        return sorted(result, key=lambda e: e.path)

    def staged_changes(self, session: Session, repo_id: str) -> list[StagedChangeInfo]:
        rows = session.exec(
            select(StagedChange)
            .where(StagedChange.repo_id == repo_id)
            .order_by(col(StagedChange.created_at), col(StagedChange.id))
        ).all()
        return [StagedChangeInfo.from_row(row) for row in rows]

    def path_occupied(self, session: Session, repo_id: str, path: str) -> bool:
        """True if path is taken in the effective view or by any staging row."""
        if self.staged_at(session, repo_id, path) is not None:
            return True
        committed = self.committed_at(session, repo_id, path)
        if committed is None:
            return False
        row = self.lineage_row(session, repo_id, path)
        # A committed file renamed away no longer holds its old path
        return row is None or row.file_path == path
