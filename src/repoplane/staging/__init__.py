"""File staging overlay: effective views and pending mutations."""

from repoplane.staging.ops import StagingOps
from repoplane.staging.overlay import (
    EffectiveFile,
    OverlayResolver,
    ResolvedFile,
    StagedChangeInfo,
    TreeEntry,
)
from repoplane.staging.paths import is_under, validate_dir, validate_path

__all__ = [
    "StagingOps",
    "OverlayResolver",
    "EffectiveFile",
    "ResolvedFile",
    "StagedChangeInfo",
    "TreeEntry",
    "is_under",
    "validate_dir",
    "validate_path",
]
