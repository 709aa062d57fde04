"""Path resolution and containment checks for filesystem tools."""

import os
import re
from pathlib import Path, PurePath

from .errors import ErrorCode, ValidationError

_SEPARATORS = re.compile(r"[\\/]")


def _invalid(message: str, field: str, path: str) -> ValidationError:
    return ValidationError(
        message,
        code=ErrorCode.INVALID_PATH,
        details={"field": field, "path": path},
    )


def _contains(root: Path, candidate: Path) -> bool:
    return candidate == root or root in candidate.parents


def resolve_request_path(path: str, root: Path, field: str = "path") -> Path:
    """
    Map a request path onto the allowed root without touching the filesystem.

    Relative paths are taken relative to root. Absolute paths are accepted only
    when they already lie inside root.

    Raises:
        ValidationError: with code invalid_path for traversal segments,
            NUL bytes, or absolute paths outside root.
    """
    if "\x00" in path:
        raise _invalid("Path contains a NUL byte", field, path)

    # Check both separators so "a\..\b" is caught on POSIX too
    if ".." in _SEPARATORS.split(path):
        raise _invalid("Parent-directory segments ('..') are not allowed", field, path)

    root = Path(os.path.normpath(root))
    pure = PurePath(path)
    candidate = Path(os.path.normpath(pure if pure.is_absolute() else root / pure))

    if not _contains(root, candidate):
        raise _invalid(f"Path is outside the allowed root: {root}", field, path)

    return candidate


def ensure_within_root(candidate: Path, root: Path, field: str = "path") -> Path:
    """
    Resolve symlinks and re-check containment.
    Called by the effect, after request validation has passed.
    """
    real_root = Path(root).resolve()
    real = candidate.resolve()
    if not _contains(real_root, real):
        raise _invalid("Path resolves outside the allowed root", field, str(candidate))
    return real


def display_path(candidate: Path, root: Path) -> str:
    """Path relative to root, as shown in responses."""
    try:
        return Path(candidate).relative_to(Path(os.path.normpath(root))).as_posix() or "."
    except ValueError:
        return str(candidate)


def atomic_write(filepath: Path, data: bytes) -> None:
    """Write bytes atomically: write to a sibling .tmp file then rename over the target."""
    tmp_path = filepath.with_name(f".{filepath.name}.{os.getpid()}.tmp")
    try:
        with open(tmp_path, "wb") as f:
            f.write(data)
        os.replace(tmp_path, filepath)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()
