"""HTTP front end of an append agent."""

from __future__ import annotations

import hmac
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from buildtee.remote.agent import AppendAgent
from buildtee.remote.channel import RPC_PATH

if TYPE_CHECKING:  # pragma: no cover - typing only
    from buildtee.config import AgentSettings

logger = logging.getLogger(__name__)


def create_app(agent: AppendAgent, authkey: str | None = None) -> FastAPI:
    """Expose ``agent`` as ``POST /rpc`` (one JSON request in, one JSON response out)."""

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        agent.close_all()

    def require_key(x_buildtee_key: str | None = Header(default=None)) -> None:
        if authkey is None:
            return
        if x_buildtee_key is None or not hmac.compare_digest(x_buildtee_key, authkey):
            raise HTTPException(status_code=401, detail="invalid agent key")

    app = FastAPI(title="buildtee agent", lifespan=lifespan)

    @app.get("/health")
    def health() -> dict[str, object]:
        return {"ok": True, "root": str(agent.root), "open_handles": agent.open_handles}

    @app.post(RPC_PATH, dependencies=[Depends(require_key)])
    async def rpc(request: Request) -> Response:
        raw = await request.body()
        payload = await run_in_threadpool(agent.handle_message, raw)
        return Response(content=payload, media_type="application/json")

    return app


def build_server(settings: AgentSettings) -> uvicorn.Server:
    agent = AppendAgent(settings.root, handle_ttl=settings.handle_ttl)
    config = uvicorn.Config(
        create_app(agent, settings.authkey),
        host=settings.host,
        port=settings.port,
        log_level="warning",
    )
    return uvicorn.Server(config)


def serve(settings: AgentSettings) -> None:
    """Run the agent until interrupted."""
    logger.info("Append agent listening on %s (root %s)", settings.address, settings.root)
    build_server(settings).run()


__all__ = ["build_server", "create_app", "serve"]
