"""Access context resolution.

Turns an explicit, per-call AccessContext into a Grant (the caller's
effective role on one project) or fails closed with AccessDeniedError.
There is no public or guest role.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog
from sqlmodel import select

from repoplane.auth.credentials import hash_token, is_well_formed
from repoplane.auth.roles import parse_role
from repoplane.core.errors import AccessDeniedError
from repoplane.store.models import Project, ProjectToken, Role

if TYPE_CHECKING:
    from sqlmodel import Session

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class AccessContext:
    """Who is calling, and for which project.

    Built per request and passed to every operation. Never stored globally.
    """

    project_id: str
    identity: str | None = None
    token: str | None = field(default=None, repr=False)


@dataclass(frozen=True, slots=True)
class Grant:
    """Resolved role of one caller on one project."""

    project_id: str
    role: Role
    identity: str | None = None
    token_id: str | None = None

    @property
    def actor(self) -> str:
        """Attribution string recorded on writes."""
        if self.identity is not None:
            return self.identity
        return f"token:{self.token_id}"


class AccessContextResolver:
    """Resolves an AccessContext against the project and token tables."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock

    def resolve(self, session: Session, ctx: AccessContext) -> Grant:
        """Resolve the caller's role.

        1. Authenticated creator of the project: owner, whatever token is sent.
        2. Otherwise a well-formed, unexpired token of this project: its role.
        3. Otherwise AccessDeniedError.
        """
        project = session.get(Project, ctx.project_id)
        if project is None:
            self._deny(ctx, "unknown_project")
            raise AccessDeniedError.unknown_project(ctx.project_id)

        if ctx.identity is not None and ctx.identity == project.created_by:
            return Grant(project_id=project.id, role=Role.OWNER, identity=ctx.identity)

        if ctx.token is None:
            self._deny(ctx, "no_credentials")
            raise AccessDeniedError.no_credentials(ctx.project_id)

        if not is_well_formed(ctx.token):
            self._deny(ctx, "malformed_token")
            raise AccessDeniedError.invalid_token(ctx.project_id)

        token = session.exec(
            select(ProjectToken).where(
                ProjectToken.token_hash == hash_token(ctx.token),
                ProjectToken.project_id == ctx.project_id,
            )
        ).first()
        if token is None:
            self._deny(ctx, "unknown_token")
            raise AccessDeniedError.invalid_token(ctx.project_id)

        # Expired and unknown tokens are indistinguishable to the caller
        if token.expires_at is not None and token.expires_at <= self._clock():
            self._deny(ctx, "expired_token", token_id=token.id)
            raise AccessDeniedError.invalid_token(ctx.project_id)

        return Grant(
            project_id=project.id,
            role=parse_role(token.role),
            identity=ctx.identity,
            token_id=token.id,
        )

    @staticmethod
    def _deny(ctx: AccessContext, reason: str, **extra: object) -> None:
        logger.info(
            "access_denied",
            project_id=ctx.project_id,
            reason=reason,
            has_identity=ctx.identity is not None,
            **extra,
        )
