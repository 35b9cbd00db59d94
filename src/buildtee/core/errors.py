"""Common buildtee exceptions."""


class TeeIOError(OSError):
    """Raised when a tee target cannot be written."""


class DirectoryCreationError(TeeIOError):
    """Raised when the parent directory of a target cannot be created."""


class TargetPathError(TeeIOError):
    """Raised when a target path is not representable on the target filesystem."""


class ChannelError(TeeIOError):
    """Raised when a remote channel fails or returns a malformed response."""


class WriteInterrupted(Exception):
    """Raised when a remote round trip is interrupted before it completes."""


__all__ = [
    "ChannelError",
    "DirectoryCreationError",
    "TargetPathError",
    "TeeIOError",
    "WriteInterrupted",
]
