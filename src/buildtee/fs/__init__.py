"""Local and remote append targets."""

from .target import TargetFile
from .paths import ensure_parent, open_for_append, resolve_path
from .appender import (
    LOCAL_APPENDER,
    REMOTE_APPENDER,
    Appender,
    LocalAppender,
    RemoteAppender,
    append,
    appender_for,
)

__all__ = [
    "LOCAL_APPENDER",
    "REMOTE_APPENDER",
    "Appender",
    "LocalAppender",
    "RemoteAppender",
    "TargetFile",
    "append",
    "appender_for",
    "ensure_parent",
    "open_for_append",
    "resolve_path",
]
