"""Open-for-append on a remote machine, exposed as a locally writable handle."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from buildtee.core.errors import ChannelError, WriteInterrupted
from buildtee.remote.protocol import (
    CloseRequest,
    EnsureParentRequest,
    OpenAppendRequest,
    WriteRequest,
)

if TYPE_CHECKING:  # pragma: no cover - typing only
    from buildtee.remote.channel import Channel

logger = logging.getLogger(__name__)


class RemoteAppendHandle:
    """Write-through handle to a file opened for append by a remote agent.

    ``close`` returns only after the agent has flushed and closed the file, so a
    closed handle means the bytes are in the remote file. A handle whose write
    was interrupted is abandoned instead: the agent may be the party that
    stalled, so no further round trip is attempted and the agent reaps the
    handle once it goes idle.
    """

    def __init__(self, channel: Channel, handle: str, path: str) -> None:
        self._channel = channel
        self.handle = handle
        self.path = path
        self.closed = False
        self.abandoned = False

    def write(self, data: bytes) -> int:
        if self.closed:
            raise ValueError("write to closed remote handle")
        try:
            self._channel.call(WriteRequest.for_payload(self.handle, data)).raise_for_error()
        except WriteInterrupted:
            self.abandoned = True
            raise
        return len(data)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.abandoned:
            logger.debug("Leaving interrupted handle %s to the agent", self.handle)
            return
        self._channel.call(CloseRequest(handle=self.handle)).raise_for_error()

    def __enter__(self) -> RemoteAppendHandle:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False


class RemoteDispatcher:
    """Run the directory bootstrap and append-open sequence on the agent side."""

    def __init__(self, channel: Channel) -> None:
        self.channel = channel

    def ensure_parent(self, path: str) -> str:
        response = self.channel.call(EnsureParentRequest(path=path)).raise_for_error()
        return response.path or ""

    def open_append(self, path: str) -> RemoteAppendHandle:
        response = self.channel.call(OpenAppendRequest(path=path)).raise_for_error()
        if not response.handle:
            raise ChannelError(f"Agent returned no handle for {path}")
        logger.debug("Opened remote handle %s for %s", response.handle, response.path)
        return RemoteAppendHandle(self.channel, response.handle, response.path or path)


__all__ = ["RemoteAppendHandle", "RemoteDispatcher"]
