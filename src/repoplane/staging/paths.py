"""Repository path rules.

Paths are relative, '/'-separated strings. Prefix matching always respects
segment boundaries: 'src/old' covers 'src/old' and 'src/old/...' but never
'src/old2/...'.
"""

from __future__ import annotations

from repoplane.core.errors import InvalidArgumentError

DEFAULT_MAX_PATH_LENGTH = 1024


def validate_path(path: str, *, max_length: int = DEFAULT_MAX_PATH_LENGTH) -> str:
    """Return path unchanged if it is a valid repository path.

    Raises:
        InvalidArgumentError: On empty, absolute, overlong, or
            non-canonical paths.
    """
    if not isinstance(path, str) or not path:
        raise InvalidArgumentError.invalid_path(str(path), "path is empty")
    if len(path) > max_length:
        raise InvalidArgumentError.invalid_path(path, f"longer than {max_length} characters")
    if "\x00" in path:
        raise InvalidArgumentError.invalid_path(path, "contains NUL")
    if "\\" in path:
        raise InvalidArgumentError.invalid_path(path, "use '/' as separator")
    if path.startswith("/"):
        raise InvalidArgumentError.invalid_path(path, "must be relative")
    if path.endswith("/"):
        raise InvalidArgumentError.invalid_path(path, "trailing '/'")
    for segment in path.split("/"):
        if segment in ("", ".", ".."):
            raise InvalidArgumentError.invalid_path(path, f"bad segment {segment!r}")
    return path


def validate_dir(path: str, *, max_length: int = DEFAULT_MAX_PATH_LENGTH) -> str:
    """Like validate_path, but '' (the repository root) is allowed."""
    if path == "":
        return path
    return validate_path(path, max_length=max_length)


def is_under(path: str, prefix: str) -> bool:
    """True if path equals prefix or lies inside the prefix folder."""
    if prefix == "":
        return True
    return path == prefix or path.startswith(prefix + "/")


def rebase(path: str, old_prefix: str, new_prefix: str) -> str:
    """Move path from under old_prefix to under new_prefix."""
    if not is_under(path, old_prefix):
        raise ValueError(f"{path!r} is not under {old_prefix!r}")
    return new_prefix + path[len(old_prefix) :]


def basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def join(directory: str, name: str) -> str:
    return f"{directory}/{name}" if directory else name
