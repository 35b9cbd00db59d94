"""Filesystem targets that may live on another machine."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing only
    from buildtee.remote.channel import Channel


@dataclass(frozen=True, slots=True)
class TargetFile:
    """A path plus the channel to the machine that owns it.

    Without a channel the path is interpreted on the local machine. With a
    channel every path resolution and all I/O happen on the remote side, so the
    path is kept as a plain string and never touched locally.
    """

    path: str
    channel: Channel | None = None

    @property
    def has_channel(self) -> bool:
        return self.channel is not None

    def child(self, relative: str) -> TargetFile:
        """Resolve ``relative`` against this target, keeping the channel."""
        if self.channel is None:
            return TargetFile(str(Path(self.path) / relative))
        if PurePath(relative).is_absolute() or posixpath.isabs(relative):
            return TargetFile(relative, self.channel)
        return TargetFile(posixpath.join(self.path, relative), self.channel)

    def local_path(self) -> Path:
        """Absolute local path; only meaningful for targets without a channel."""
        return Path(self.path).absolute()

    def __str__(self) -> str:
        return self.path if self.channel is None else f"{self.path} (remote)"


__all__ = ["TargetFile"]
