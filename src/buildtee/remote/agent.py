"""Worker-side execution of append requests."""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import BinaryIO
from uuid import uuid4

from buildtee.core.errors import ChannelError
from buildtee.fs.paths import ensure_parent, open_for_append
from buildtee.remote.protocol import (
    CloseRequest,
    EnsureParentRequest,
    OpenAppendRequest,
    Request,
    Response,
    WriteRequest,
    decode_request,
    encode_response,
)

logger = logging.getLogger(__name__)

DEFAULT_HANDLE_TTL = 300.0


class AppendAgent:
    """Serve append requests against the filesystem of the machine it runs on.

    Relative request paths are resolved against ``root``. Handles live between
    an ``open_append`` and the matching ``close``; a handle whose client gave up
    on it (interrupted round trip) is closed once it has been idle for
    ``handle_ttl`` seconds.
    """

    def __init__(self, root: str | Path = ".", *, handle_ttl: float = DEFAULT_HANDLE_TTL) -> None:
        self.root = Path(root).absolute()
        self.handle_ttl = handle_ttl
        self._handles: dict[str, BinaryIO] = {}
        self._last_used: dict[str, float] = {}
        self._lock = threading.Lock()

    @property
    def open_handles(self) -> int:
        with self._lock:
            return len(self._handles)

    def handle_message(self, raw: bytes) -> bytes:
        """Decode one request, execute it and return the encoded response."""
        try:
            request = decode_request(raw)
        except ChannelError as exc:
            logger.warning("Rejected malformed request: %s", exc)
            return encode_response(Response.from_exception(exc))
        return encode_response(self.dispatch(request))

    def dispatch(self, request: Request) -> Response:
        self.reap_idle()
        try:
            if isinstance(request, EnsureParentRequest):
                return Response(path=str(ensure_parent(request.path, self.root)))
            if isinstance(request, OpenAppendRequest):
                return self._open(request)
            if isinstance(request, WriteRequest):
                stream = self._lookup(request.handle)
                stream.write(request.payload)
                stream.flush()
                return Response(handle=request.handle)
            if isinstance(request, CloseRequest):
                self._close(request.handle)
                return Response(handle=request.handle)
        except OSError as exc:
            logger.debug("Request %s failed: %s", request.op, exc)
            return Response.from_exception(exc)
        return Response.failure("protocol", f"Unsupported operation {request.op!r}")

    def reap_idle(self, now: float | None = None) -> int:
        """Close handles idle for longer than ``handle_ttl``; return how many."""
        now = time.monotonic() if now is None else now
        with self._lock:
            expired = [
                handle_id
                for handle_id, last_used in self._last_used.items()
                if now - last_used > self.handle_ttl
            ]
            streams = [(handle_id, self._forget(handle_id)) for handle_id in expired]
        for handle_id, stream in streams:
            logger.info("Closing idle handle %s", handle_id)
            self._release(handle_id, stream)
        return len(streams)

    def close_all(self) -> None:
        """Release every handle still open, e.g. when the agent shuts down."""
        with self._lock:
            streams = [(handle_id, self._forget(handle_id)) for handle_id in list(self._handles)]
        for handle_id, stream in streams:
            logger.debug("Closing abandoned handle %s", handle_id)
            self._release(handle_id, stream)

    def _open(self, request: OpenAppendRequest) -> Response:
        stream = open_for_append(request.path, self.root)
        handle_id = uuid4().hex
        with self._lock:
            self._handles[handle_id] = stream
            self._last_used[handle_id] = time.monotonic()
        return Response(handle=handle_id, path=stream.name)

    def _lookup(self, handle_id: str) -> BinaryIO:
        with self._lock:
            stream = self._handles.get(handle_id)
            if stream is not None:
                self._last_used[handle_id] = time.monotonic()
        if stream is None:
            raise ChannelError(f"Unknown handle {handle_id}")
        return stream

    def _close(self, handle_id: str) -> None:
        with self._lock:
            stream = self._forget(handle_id)
        if stream is None:
            raise ChannelError(f"Unknown handle {handle_id}")
        with stream:
            stream.flush()

    def _forget(self, handle_id: str) -> BinaryIO | None:
        self._last_used.pop(handle_id, None)
        return self._handles.pop(handle_id, None)

    @staticmethod
    def _release(handle_id: str, stream: BinaryIO | None) -> None:
        if stream is None:
            return
        try:
            stream.close()
        except OSError as exc:
            logger.warning("Failed to close handle %s: %s", handle_id, exc)


__all__ = ["AppendAgent", "DEFAULT_HANDLE_TTL"]
