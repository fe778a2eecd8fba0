"""Opaque project-token credentials.

Credentials look like ``rpt_<32 url-safe chars>``. Only a SHA-256 digest is
stored; the raw value is shown once when minted.
"""

from __future__ import annotations

import hashlib
import re
import secrets

TOKEN_PREFIX = "rpt_"
_TOKEN_BYTES = 24  # 32 url-safe characters
_TOKEN_RE = re.compile(r"^rpt_[A-Za-z0-9_-]{32}$")
_DISPLAY_PREFIX_LEN = 8


def generate_token() -> str:
    return TOKEN_PREFIX + secrets.token_urlsafe(_TOKEN_BYTES)


def is_well_formed(token: str) -> bool:
    return bool(_TOKEN_RE.match(token))


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def display_prefix(token: str) -> str:
    """Leading characters safe to show in token listings."""
    return token[: len(TOKEN_PREFIX) + _DISPLAY_PREFIX_LEN]
