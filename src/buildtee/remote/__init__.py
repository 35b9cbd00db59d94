"""Remote append agents and the channels that reach them."""

from .agent import AppendAgent
from .channel import Channel, HttpChannel, LoopbackChannel, connect
from .dispatcher import RemoteAppendHandle, RemoteDispatcher
from .server import build_server, create_app, serve

__all__ = [
    "AppendAgent",
    "Channel",
    "HttpChannel",
    "LoopbackChannel",
    "RemoteAppendHandle",
    "RemoteDispatcher",
    "build_server",
    "connect",
    "create_app",
    "serve",
]
