"""Authorization gate.

Every operation that discloses or mutates project-scoped state calls
``require`` exactly once, first, inside its store transaction. A denial
raises before any lookup or write happens.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import update

from repoplane.auth.context import AccessContext, AccessContextResolver, Grant
from repoplane.auth.roles import meets, parse_role
from repoplane.core.errors import AccessDeniedError
from repoplane.store.models import ProjectToken, Role

if TYPE_CHECKING:
    from sqlmodel import Session

    from repoplane.store.database import Database

logger = structlog.get_logger()

DEFAULT_TOUCH_TIMEOUT_MS = 50


class AuthorizationGate:
    """Resolves callers and enforces minimum roles."""

    def __init__(
        self,
        db: Database,
        *,
        resolver: AccessContextResolver | None = None,
        touch_timeout_ms: int = DEFAULT_TOUCH_TIMEOUT_MS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db = db
        self._clock = clock
        self._resolver = resolver or AccessContextResolver(clock=clock)
        self._touch_timeout_ms = touch_timeout_ms

    def authorize(self, session: Session, ctx: AccessContext) -> Grant:
        """Resolve the caller's role or raise AccessDeniedError."""
        return self._resolver.resolve(session, ctx)

    def require(self, session: Session, ctx: AccessContext, min_role: Role | str) -> Grant:
        """Resolve the caller and check it meets min_role.

        Raises:
            InvalidArgumentError: min_role is not a role.
            AccessDeniedError: No access, or a lower role than min_role.
        """
        minimum = parse_role(min_role)
        grant = self._resolver.resolve(session, ctx)
        if not meets(grant.role, minimum):
            logger.info(
                "access_denied",
                project_id=ctx.project_id,
                reason="insufficient_role",
                required=minimum.value,
                actual=grant.role.value,
            )
            raise AccessDeniedError.insufficient_role(
                ctx.project_id, minimum.value, grant.role.value
            )
        return grant

    def record_use(self, grant: Grant) -> None:
        """Stamp last_used_at on the grant's token. Fire-and-forget.

        Runs outside the operation's transaction with a short busy timeout;
        under contention the update is dropped.
        """
        if grant.token_id is None:
            return
        stmt = (
            update(ProjectToken)
            .where(ProjectToken.id == grant.token_id)  # type: ignore[arg-type]
            .values(last_used_at=self._clock())
        )
        if not self._db.execute_best_effort(stmt, self._touch_timeout_ms):
            logger.warning("token_touch_dropped", token_id=grant.token_id)
