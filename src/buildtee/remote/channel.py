"""Transports carrying append requests to the machine that owns a file."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Protocol

import httpx

from buildtee.core.errors import ChannelError, WriteInterrupted
from buildtee.remote.agent import AppendAgent
from buildtee.remote.protocol import (
    Request,
    Response,
    decode_response,
    encode_request,
)

if TYPE_CHECKING:  # pragma: no cover - typing only
    from buildtee.config import AgentSettings

logger = logging.getLogger(__name__)

AUTH_HEADER = "x-buildtee-key"
RPC_PATH = "/rpc"


class Channel(Protocol):
    """Send one request to the remote machine and wait for its response."""

    def call(self, request: Request, /) -> Response:  # pragma: no cover - interface only
        ...


class LoopbackChannel:
    """In-process channel that still marshals every message through the codec."""

    def __init__(self, agent: AppendAgent) -> None:
        self.agent = agent

    def call(self, request: Request, /) -> Response:
        return decode_response(self.agent.handle_message(encode_request(request)))


class HttpChannel:
    """Request/response channel to an agent's HTTP endpoint.

    Each request runs on a worker thread while the caller waits in slices of
    ``poll_interval``. :meth:`interrupt` abandons the call in flight (or the
    next one) with ``WriteInterrupted``; the abandoned HTTP exchange finishes in
    the background and its response is ignored.
    """

    def __init__(
        self,
        client: httpx.Client,
        *,
        authkey: str | None = None,
        poll_interval: float = 0.05,
        max_workers: int = 4,
    ) -> None:
        self._client = client
        self._headers = {AUTH_HEADER: authkey} if authkey else {}
        self._poll_interval = poll_interval
        self._interrupted = threading.Event()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="buildtee-http")

    def interrupt(self) -> None:
        """Abandon the call in flight (or the next one) with ``WriteInterrupted``."""
        self._interrupted.set()

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._client.close()

    def __enter__(self) -> HttpChannel:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def call(self, request: Request, /) -> Response:
        future = self._executor.submit(self._post, request)
        return self._wait(future, request.op)

    def _wait(self, future: Future[Response], op: str) -> Response:
        while True:
            try:
                return future.result(timeout=self._poll_interval)
            except TimeoutError:
                if self._interrupted.is_set():
                    self._interrupted.clear()
                    future.cancel()
                    raise WriteInterrupted(f"Interrupted while waiting for {op}") from None

    def _post(self, request: Request) -> Response:
        try:
            reply = self._client.post(
                RPC_PATH,
                content=encode_request(request),
                headers={"content-type": "application/json", **self._headers},
            )
        except httpx.HTTPError as exc:
            raise ChannelError(f"Channel failed during {request.op}: {exc}") from exc
        if reply.status_code == 401:
            raise ChannelError("Agent rejected the credentials")
        if reply.is_error:
            raise ChannelError(f"Agent answered {reply.status_code} during {request.op}: {reply.text}")
        return decode_response(reply.content)


def connect(settings: AgentSettings) -> HttpChannel:
    """Open a channel to the agent described by ``settings``."""
    client = httpx.Client(base_url=f"http://{settings.address}", timeout=settings.timeout)
    return HttpChannel(client, authkey=settings.authkey, poll_interval=settings.poll_interval)


__all__ = [
    "AUTH_HEADER",
    "Channel",
    "HttpChannel",
    "LoopbackChannel",
    "RPC_PATH",
    "connect",
]
