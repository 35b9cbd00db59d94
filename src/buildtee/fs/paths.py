"""Directory bootstrapping and append-mode opening shared by both appender sides."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import BinaryIO

from buildtee.core.errors import DirectoryCreationError, TargetPathError, TeeIOError

logger = logging.getLogger(__name__)


def resolve_path(path: str | os.PathLike[str], root: str | os.PathLike[str] | None = None) -> Path:
    """Return the absolute form of ``path``, relative paths anchored at ``root``.

    ``root`` defaults to the current working directory. Symlinks are left alone.
    Raises :class:`TargetPathError` for paths the filesystem cannot represent.
    """
    raw = os.fspath(path)
    if not raw:
        raise TargetPathError("Target path is empty")
    if "\x00" in raw:
        raise TargetPathError(f"Target path contains a NUL byte: {raw!r}")
    try:
        candidate = Path(raw)
        if not candidate.is_absolute():
            base = Path(root) if root is not None else Path.cwd()
            candidate = base.absolute() / candidate
        os.fsencode(candidate)
    except (TypeError, ValueError) as exc:
        raise TargetPathError(f"Invalid target path {raw!r}: {exc}") from exc
    return candidate


def ensure_parent(path: str | os.PathLike[str], root: str | os.PathLike[str] | None = None) -> Path:
    """Create the missing parent directories of ``path`` and return the parent."""
    parent = resolve_path(path, root).parent
    if not parent.is_dir():
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            if not parent.is_dir():
                raise DirectoryCreationError(f"Failed to create directory {parent}") from exc
        else:
            logger.debug("Created directory %s", parent)
    return parent


def open_for_append(path: str | os.PathLike[str], root: str | os.PathLike[str] | None = None) -> BinaryIO:
    """Open ``path`` with create+append+write semantics, creating parents first."""
    target = resolve_path(path, root)
    ensure_parent(target)
    try:
        return target.open("ab")
    except ValueError as exc:
        raise TargetPathError(f"Invalid target path {str(target)!r}: {exc}") from exc
    except OSError as exc:
        raise TeeIOError(f"Cannot open {target} for append: {exc}") from exc


__all__ = ["ensure_parent", "open_for_append", "resolve_path"]
