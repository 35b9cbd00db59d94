"""The ``tee`` pipeline step: mirror a block's console output into a file."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any, BinaryIO, TypeVar

from buildtee.fs.appender import appender_for
from buildtee.fs.target import TargetFile
from buildtee.tee import ConsoleLogFilter, TeeFilter, merge_console_filters

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class StepDescriptor:
    """How a step is exposed to pipeline scripts."""

    function_name: str
    display_name: str
    takes_implicit_block_argument: bool = False
    required_context: tuple[str, ...] = ()


DESCRIPTOR = StepDescriptor(
    function_name="tee",
    display_name="Tee output to file",
    takes_implicit_block_argument=True,
    required_context=("workspace",),
)


@dataclass(slots=True)
class StepContext:
    """What a running step can see: its workspace and console.

    ``console`` is the stream already decorated by every filter in
    ``console_filter``; the filter chain is kept for consoles opened later.
    """

    workspace: TargetFile
    console: BinaryIO
    console_filter: ConsoleLogFilter | None = None
    run: Any = None


@dataclass(frozen=True, slots=True)
class TeeStep:
    """Duplicate the console output of a nested block into ``file``.

    ``file`` is resolved against the workspace of the step context, locally or on
    the worker behind the workspace channel.
    """

    file: str

    def __post_init__(self) -> None:
        if not isinstance(self.file, str) or not self.file.strip():
            raise ValueError("tee requires a non-empty file path")

    def target(self, context: StepContext) -> TargetFile:
        return context.workspace.child(self.file)

    @contextmanager
    def open(self, context: StepContext) -> Iterator[StepContext]:
        """Yield a child context whose console is teed into the target file.

        The parent directory is created before the block starts, so a directory
        that cannot be created aborts the step up front.
        """
        target = self.target(context)
        parent = appender_for(target).prepare(target)
        logger.debug("Teeing console output to %s (directory %s)", target, parent)
        tee_filter = TeeFilter(target)
        console = tee_filter.decorate_logger(context.run, context.console)
        console_filter = merge_console_filters(context.console_filter, tee_filter)
        try:
            yield replace(context, console=console, console_filter=console_filter)
        finally:
            console.flush()

    def start(self, context: StepContext, body: Callable[[StepContext], T]) -> T:
        """Run ``body`` synchronously with the teed console and return its result."""
        with self.open(context) as child:
            return body(child)


__all__ = ["DESCRIPTOR", "StepContext", "StepDescriptor", "TeeStep"]
