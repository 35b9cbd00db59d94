"""Duplicate console output into an append-only target file."""

from __future__ import annotations

from typing import Any, BinaryIO, Protocol

from buildtee.fs.appender import Payload, append
from buildtee.fs.target import TargetFile


class TeeAdapter:
    """Binary sink that forwards every write to ``primary`` and then to ``target``.

    The primary sink always sees a payload before the file does. Interrupted
    file writes are dropped inside :func:`buildtee.fs.append`; any other file
    error is raised to the writer once the primary sink already has the bytes.
    ``flush`` and ``close`` only concern the primary sink since the file side
    never keeps a handle open between writes.
    """

    def __init__(self, primary: BinaryIO, target: TargetFile) -> None:
        self.primary = primary
        self.target = target

    def write(self, data: Payload | int) -> int:
        payload = bytes([data]) if isinstance(data, int) else bytes(data)
        self.primary.write(payload)
        append(self.target, payload)
        return len(payload)

    def writelines(self, lines) -> None:
        for line in lines:
            self.write(line)

    def flush(self) -> None:
        self.primary.flush()

    def close(self) -> None:
        self.primary.close()

    @property
    def closed(self) -> bool:
        return bool(getattr(self.primary, "closed", False))

    def writable(self) -> bool:
        return True

    def __enter__(self) -> TeeAdapter:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def __getattr__(self, name: str) -> Any:
        if name == "primary":
            raise AttributeError(name)
        return getattr(self.primary, name)


class ConsoleLogFilter(Protocol):
    """Decorates the console logger of a running build."""

    def decorate_logger(self, run: Any, logger: BinaryIO, /) -> BinaryIO:  # pragma: no cover
        ...


class TeeFilter:
    """Console filter wrapping the logger in a :class:`TeeAdapter`."""

    def __init__(self, target: TargetFile) -> None:
        self.target = target

    def decorate_logger(self, run: Any, logger: BinaryIO, /) -> BinaryIO:
        return TeeAdapter(logger, self.target)  # type: ignore[return-value]


class _MergedFilter:
    def __init__(self, original: ConsoleLogFilter, subsequent: ConsoleLogFilter) -> None:
        self.original = original
        self.subsequent = subsequent

    def decorate_logger(self, run: Any, logger: BinaryIO, /) -> BinaryIO:
        return self.subsequent.decorate_logger(run, self.original.decorate_logger(run, logger))


def merge_console_filters(
    original: ConsoleLogFilter | None, subsequent: ConsoleLogFilter | None
) -> ConsoleLogFilter | None:
    """Compose two filters; ``original`` decorates the raw logger first."""
    if original is None:
        return subsequent
    if subsequent is None:
        return original
    return _MergedFilter(original, subsequent)


__all__ = [
    "ConsoleLogFilter",
    "TeeAdapter",
    "TeeFilter",
    "merge_console_filters",
]
