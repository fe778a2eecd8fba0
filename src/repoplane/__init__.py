"""RepoPlane - token-scoped authorization and a file staging overlay."""

from repoplane.auth.context import AccessContext
from repoplane.plane import RepoPlane
from repoplane.store.models import Role

__all__ = ["AccessContext", "RepoPlane", "Role"]
