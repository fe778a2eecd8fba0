"""Token-scoped role authorization."""

from repoplane.auth.context import AccessContext, AccessContextResolver, Grant
from repoplane.auth.credentials import generate_token, hash_token, is_well_formed
from repoplane.auth.gate import AuthorizationGate
from repoplane.auth.roles import ROLE_ORDINALS, meets, ordinal, parse_role

__all__ = [
    "AccessContext",
    "AccessContextResolver",
    "Grant",
    "AuthorizationGate",
    "ROLE_ORDINALS",
    "meets",
    "ordinal",
    "parse_role",
    "generate_token",
    "hash_token",
    "is_well_formed",
]
