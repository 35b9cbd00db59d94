"""Core utilities shared across buildtee modules."""

from .errors import (
    ChannelError,
    DirectoryCreationError,
    TargetPathError,
    TeeIOError,
    WriteInterrupted,
)

__all__ = [
    "ChannelError",
    "DirectoryCreationError",
    "TargetPathError",
    "TeeIOError",
    "WriteInterrupted",
]
