"""Mirror build console output into local or remote append-only files."""

from buildtee.fs import TargetFile, append, appender_for
from buildtee.remote import AppendAgent, LoopbackChannel, RemoteDispatcher
from buildtee.step import DESCRIPTOR, StepContext, TeeStep
from buildtee.tee import TeeAdapter, TeeFilter, merge_console_filters

__all__ = [
    "DESCRIPTOR",
    "AppendAgent",
    "LoopbackChannel",
    "RemoteDispatcher",
    "StepContext",
    "TargetFile",
    "TeeAdapter",
    "TeeFilter",
    "TeeStep",
    "append",
    "appender_for",
    "merge_console_filters",
]
