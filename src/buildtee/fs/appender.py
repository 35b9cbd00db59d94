"""Stateless append of one payload to a local or remote target file.

Every call runs a complete open -> write -> close cycle. Nothing is cached
between calls: not the handle, not the knowledge that the parent directory
exists. The target machine may restart between two writes and another writer
may have moved the file; each append starts from scratch.
"""

from __future__ import annotations

import logging
from typing import Protocol, Union

from buildtee.core.errors import TeeIOError, WriteInterrupted
from buildtee.fs.paths import ensure_parent, open_for_append
from buildtee.fs.target import TargetFile
from buildtee.remote.dispatcher import RemoteDispatcher

logger = logging.getLogger(__name__)

Payload = Union[bytes, bytearray, memoryview]


class Appender(Protocol):
    def prepare(self, target: TargetFile) -> str:  # pragma: no cover - interface only
        ...

    def append(self, target: TargetFile, payload: bytes) -> None:  # pragma: no cover
        ...


class LocalAppender:
    """Append on the machine running this process."""

    def prepare(self, target: TargetFile) -> str:
        return str(ensure_parent(target.path))

    def append(self, target: TargetFile, payload: bytes) -> None:
        handle = open_for_append(target.path)
        try:
            with handle:
                handle.write(payload)
        except OSError as exc:
            raise TeeIOError(f"Cannot append to {target}: {exc}") from exc


class RemoteAppender:
    """Append through the target's channel; the agent owns the file."""

    def prepare(self, target: TargetFile) -> str:
        return RemoteDispatcher(_require_channel(target)).ensure_parent(target.path)

    def append(self, target: TargetFile, payload: bytes) -> None:
        with RemoteDispatcher(_require_channel(target)).open_append(target.path) as handle:
            handle.write(payload)


def _require_channel(target: TargetFile):
    if target.channel is None:
        raise ValueError(f"{target.path} has no channel")
    return target.channel


LOCAL_APPENDER = LocalAppender()
REMOTE_APPENDER = RemoteAppender()


def appender_for(target: TargetFile) -> Appender:
    """Pick the appender variant for ``target`` from its locality."""
    return REMOTE_APPENDER if target.has_channel else LOCAL_APPENDER


def append(target: TargetFile, payload: Payload) -> None:
    """Append ``payload`` to ``target`` in one self-contained cycle.

    An interrupted remote round trip drops the payload without raising; every
    other failure propagates as an ``OSError``.
    """
    data = bytes(payload)
    try:
        appender_for(target).append(target, data)
    except WriteInterrupted:
        # TODO: decide whether interrupted writes should be retried instead of dropped.
        logger.debug("Dropped %d byte(s) for %s after an interrupted write", len(data), target)


__all__ = [
    "LOCAL_APPENDER",
    "REMOTE_APPENDER",
    "Appender",
    "LocalAppender",
    "Payload",
    "RemoteAppender",
    "append",
    "appender_for",
]
