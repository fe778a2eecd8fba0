"""Project, repository and token administration."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import delete
from sqlmodel import col, select

from repoplane.auth.credentials import display_prefix, generate_token, hash_token
from repoplane.auth.roles import parse_role
from repoplane.core.errors import InvalidArgumentError, NotFoundError
from repoplane.store.models import (
    CommittedFile,
    Project,
    ProjectToken,
    Repository,
    Role,
    StagedChange,
)

if TYPE_CHECKING:
    from sqlmodel import Session

    from repoplane.auth.context import AccessContext
    from repoplane.auth.gate import AuthorizationGate
    from repoplane.store.database import Database

logger = structlog.get_logger()

_MAX_NAME_LENGTH = 200


@dataclass(frozen=True, slots=True)
class ProjectInfo:
    id: str
    name: str
    created_by: str
    created_at: float


@dataclass(frozen=True, slots=True)
class RepositoryInfo:
    id: str
    project_id: str
    name: str
    created_at: float


@dataclass(frozen=True, slots=True)
class TokenInfo:
    """Token metadata. Never carries the hash or the raw credential."""

    id: str
    project_id: str
    token_prefix: str
    role: Role
    label: str | None
    created_by: str | None
    created_at: float
    expires_at: float | None
    last_used_at: float | None

    @classmethod
    def from_row(cls, row: ProjectToken) -> TokenInfo:
        return cls(
            id=row.id,
            project_id=row.project_id,
            token_prefix=row.token_prefix,
            role=parse_role(row.role),
            label=row.label,
            created_by=row.created_by,
            created_at=row.created_at,
            expires_at=row.expires_at,
            last_used_at=row.last_used_at,
        )


@dataclass(frozen=True, slots=True)
class DeletionReport:
    """Row counts removed by a project deletion."""

    project_id: str
    staged_changes: int
    committed_files: int
    repositories: int
    tokens: int


class ProjectAdmin:
    """Project lifecycle and token management."""

    def __init__(
        self,
        db: Database,
        gate: AuthorizationGate,
        *,
        default_token_role: Role | str = Role.EDITOR,
        default_token_label: str = "Default",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db = db
        self._gate = gate
        self._default_token_role = parse_role(default_token_role)
        self._default_token_label = default_token_label
        self._clock = clock

    # ------------------------------------------------------------------
    # Projects & repositories
    # ------------------------------------------------------------------

    def create_project(self, identity: str, name: str) -> tuple[ProjectInfo, str]:
        """Create a project owned by identity and mint its default token.

        Returns:
            The project and the raw default token, shown only this once.
        """
        if not identity:
            raise InvalidArgumentError.invalid("identity", "must not be empty")
        name = _check_name("name", name)
        now = self._clock()
        with self._db.immediate_transaction() as session:
            project = Project(name=name, created_by=identity, created_at=now)
            session.add(project)
            session.flush()
            raw, _ = self._mint(
                session,
                project.id,
                self._default_token_role,
                label=self._default_token_label,
                created_by=identity,
                expires_at=None,
            )
            info = ProjectInfo(
                id=project.id,
                name=project.name,
                created_by=project.created_by,
                created_at=project.created_at,
            )
        logger.info("project_created", project_id=info.id, created_by=identity)
        return info, raw

    def create_repository(self, ctx: AccessContext, name: str) -> RepositoryInfo:
        with self._db.immediate_transaction() as session:
            grant = self._gate.require(session, ctx, Role.EDITOR)
            name = _check_name("name", name)
            repo = Repository(project_id=ctx.project_id, name=name, created_at=self._clock())
            session.add(repo)
            session.flush()
            info = RepositoryInfo(
                id=repo.id, project_id=repo.project_id, name=repo.name, created_at=repo.created_at
            )
        self._gate.record_use(grant)
        logger.info("repository_created", project_id=ctx.project_id, repo_id=info.id)
        return info

    def list_repositories(self, ctx: AccessContext) -> list[RepositoryInfo]:
        with self._db.session() as session:
            grant = self._gate.require(session, ctx, Role.VIEWER)
            rows = session.exec(
                select(Repository)
                .where(Repository.project_id == ctx.project_id)
                .order_by(col(Repository.created_at), col(Repository.id))
            ).all()
            result = [
                RepositoryInfo(
                    id=r.id, project_id=r.project_id, name=r.name, created_at=r.created_at
                )
                for r in rows
            ]
        self._gate.record_use(grant)
        return result

    def delete_project(self, ctx: AccessContext) -> DeletionReport:
        """Delete a project and everything under it. Owner only."""
        with self._db.immediate_transaction() as session:
            self._gate.require(session, ctx, Role.OWNER)
            repo_ids = select(Repository.id).where(Repository.project_id == ctx.project_id)
            staged_stmt = delete(StagedChange).where(col(StagedChange.project_id) == ctx.project_id)
            committed_stmt = delete(CommittedFile).where(col(CommittedFile.repo_id).in_(repo_ids))
            repos_stmt = delete(Repository).where(col(Repository.project_id) == ctx.project_id)
            tokens_stmt = delete(ProjectToken).where(col(ProjectToken.project_id) == ctx.project_id)
            report = DeletionReport(
                project_id=ctx.project_id,
                staged_changes=_delete(session, staged_stmt),
                committed_files=_delete(session, committed_stmt),
                repositories=_delete(session, repos_stmt),
                tokens=_delete(session, tokens_stmt),
            )
            _delete(session, delete(Project).where(col(Project.id) == ctx.project_id))
        # No record_use: the token row is gone
        logger.info(
            "project_deleted",
            project_id=report.project_id,
            staged_changes=report.staged_changes,
            committed_files=report.committed_files,
            repositories=report.repositories,
            tokens=report.tokens,
        )
        return report

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    def create_token(
        self,
        ctx: AccessContext,
        role: Role | str,
        label: str | None = None,
        expires_at: float | None = None,
    ) -> tuple[TokenInfo, str]:
        """Mint a token. Owner only; owner tokens cannot be minted.

        Returns:
            Token metadata and the raw credential, shown only this once.
        """
        with self._db.immediate_transaction() as session:
            grant = self._gate.require(session, ctx, Role.OWNER)
            token_role = parse_role(role)
            if token_role == Role.OWNER:
                raise InvalidArgumentError.invalid("role", "owner tokens cannot be minted")
            self._check_expiry(expires_at)
            raw, row = self._mint(
                session,
                ctx.project_id,
                token_role,
                label=label,
                created_by=grant.actor,
                expires_at=expires_at,
            )
            info = TokenInfo.from_row(row)
        self._gate.record_use(grant)
        logger.info(
            "token_created",
            project_id=ctx.project_id,
            token_id=info.id,
            role=info.role.value,
            actor=grant.actor,
        )
        return info, raw

    def list_tokens(self, ctx: AccessContext) -> list[TokenInfo]:
        """Project tokens, newest first."""
        with self._db.session() as session:
            grant = self._gate.require(session, ctx, Role.OWNER)
            rows = session.exec(
                select(ProjectToken)
                .where(ProjectToken.project_id == ctx.project_id)
                .order_by(col(ProjectToken.created_at).desc(), col(ProjectToken.id).desc())
            ).all()
            result = [TokenInfo.from_row(row) for row in rows]
        self._gate.record_use(grant)
        return result

    def update_token(
        self,
        ctx: AccessContext,
        token_id: str,
        label: str | None = None,
        expires_at: float | None = None,
    ) -> TokenInfo:
        """Relabel a token and replace its expiry.

        label=None keeps the current label; expires_at=None clears the expiry.
        """
        with self._db.immediate_transaction() as session:
            grant = self._gate.require(session, ctx, Role.OWNER)
            row = self._token(session, ctx.project_id, token_id)
            self._check_expiry(expires_at)
            if label is not None:
                row.label = label
            row.expires_at = expires_at
            session.add(row)
            session.flush()
            info = TokenInfo.from_row(row)
        self._gate.record_use(grant)
        logger.info("token_updated", project_id=ctx.project_id, token_id=token_id)
        return info

    def revoke_token(self, ctx: AccessContext, token_id: str) -> None:
        with self._db.immediate_transaction() as session:
            grant = self._gate.require(session, ctx, Role.OWNER)
            row = self._token(session, ctx.project_id, token_id)
            session.delete(row)
        if grant.token_id != token_id:
            self._gate.record_use(grant)
        logger.info("token_revoked", project_id=ctx.project_id, token_id=token_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _mint(
        self,
        session: Session,
        project_id: str,
        role: Role,
        *,
        label: str | None,
        created_by: str | None,
        expires_at: float | None,
    ) -> tuple[str, ProjectToken]:
        raw = generate_token()
        row = ProjectToken(
            project_id=project_id,
            token_hash=hash_token(raw),
            token_prefix=display_prefix(raw),
            role=role.value,
            label=label,
            created_by=created_by,
            created_at=self._clock(),
            expires_at=expires_at,
        )
        session.add(row)
        session.flush()
        return raw, row

    @staticmethod
    def _token(session: Session, project_id: str, token_id: str) -> ProjectToken:
        row = session.get(ProjectToken, token_id)
        if row is None or row.project_id != project_id:
            raise NotFoundError.token(token_id)
        return row

    def _check_expiry(self, expires_at: float | None) -> None:
        if expires_at is not None and expires_at <= self._clock():
            raise InvalidArgumentError.invalid("expires_at", "must be in the future")


def _check_name(field: str, value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise InvalidArgumentError.invalid(field, "must not be empty")
    if len(value) > _MAX_NAME_LENGTH:
        raise InvalidArgumentError.invalid(field, f"longer than {_MAX_NAME_LENGTH} characters")
    return value


def _delete(session: Session, stmt: object) -> int:
    result = session.exec(stmt)  # type: ignore[call-overload]
    return result.rowcount
