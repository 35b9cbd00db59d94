"""Request/response messages exchanged with a remote append agent.

Every message is a single JSON document. Requests carry an ``op`` field used as
the pydantic discriminator; payload bytes travel base64 encoded so the
transport only ever moves text.
"""

from __future__ import annotations

import base64
import binascii
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from buildtee.core.errors import (
    ChannelError,
    DirectoryCreationError,
    TargetPathError,
    TeeIOError,
)

ErrorKind = Literal["directory", "path", "io", "protocol"]


class EnsureParentRequest(BaseModel):
    """Create the parent directories of ``path`` on the agent."""

    op: Literal["ensure_parent"] = "ensure_parent"
    path: str


class OpenAppendRequest(BaseModel):
    """Open ``path`` for append on the agent and return a handle id."""

    op: Literal["open_append"] = "open_append"
    path: str


class WriteRequest(BaseModel):
    """Write one payload through a previously opened handle."""

    op: Literal["write"] = "write"
    handle: str
    data: str = ""

    @field_validator("data")
    @classmethod
    def _valid_base64(cls, value: str) -> str:
        try:
            base64.b64decode(value, validate=True)
        except binascii.Error as exc:
            raise ValueError("data must be base64 encoded") from exc
        return value

    @classmethod
    def for_payload(cls, handle: str, payload: bytes) -> WriteRequest:
        return cls(handle=handle, data=base64.b64encode(payload).decode("ascii"))

    @property
    def payload(self) -> bytes:
        return base64.b64decode(self.data)


class CloseRequest(BaseModel):
    """Flush and close a handle; acknowledged only once the file is closed."""

    op: Literal["close"] = "close"
    handle: str


Request = Annotated[
    Union[EnsureParentRequest, OpenAppendRequest, WriteRequest, CloseRequest],
    Field(discriminator="op"),
]

_REQUEST_ADAPTER: TypeAdapter[Request] = TypeAdapter(Request)


class Response(BaseModel):
    """Agent reply. ``kind`` classifies failures so the caller can rebuild them."""

    ok: bool = True
    handle: str | None = None
    path: str | None = None
    error: str | None = None
    kind: ErrorKind | None = None

    @classmethod
    def failure(cls, kind: ErrorKind, error: str) -> Response:
        return cls(ok=False, kind=kind, error=error)

    @classmethod
    def from_exception(cls, exc: BaseException) -> Response:
        if isinstance(exc, DirectoryCreationError):
            kind: ErrorKind = "directory"
        elif isinstance(exc, TargetPathError):
            kind = "path"
        elif isinstance(exc, ChannelError):
            kind = "protocol"
        else:
            kind = "io"
        return cls.failure(kind, str(exc))

    def raise_for_error(self) -> Response:
        """Raise the exception matching a failed response, else return ``self``."""
        if self.ok:
            return self
        message = self.error or "remote operation failed"
        if self.kind == "directory":
            raise DirectoryCreationError(message)
        if self.kind == "path":
            raise TargetPathError(message)
        if self.kind == "protocol":
            raise ChannelError(message)
        raise TeeIOError(message)


def encode_request(request: Request) -> bytes:
    return request.model_dump_json().encode("utf-8")


def decode_request(raw: bytes) -> Request:
    try:
        return _REQUEST_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        raise ChannelError(f"Malformed request: {exc}") from exc


def encode_response(response: Response) -> bytes:
    return response.model_dump_json(exclude_none=True).encode("utf-8")


def decode_response(raw: bytes) -> Response:
    try:
        return Response.model_validate_json(raw)
    except ValidationError as exc:
        raise ChannelError(f"Malformed response: {exc}") from exc


__all__ = [
    "CloseRequest",
    "EnsureParentRequest",
    "ErrorKind",
    "OpenAppendRequest",
    "Request",
    "Response",
    "WriteRequest",
    "decode_request",
    "decode_response",
    "encode_request",
    "encode_response",
]
