import os

import pytest
from fastapi.testclient import TestClient

from buildtee.remote import AppendAgent, HttpChannel, create_app

_AGENT_ENV_FLAG = "BUILDTEE_RUN_AGENT_TESTS"
_AGENT_PREFIXES = ("tests/test_cli_agent_",)


def pytest_collection_modifyitems(config, items):
    """Skip tests that open real sockets unless explicitly enabled."""

    if os.getenv(_AGENT_ENV_FLAG):
        return
    skip_agent = pytest.mark.skip(
        reason=f"Set {_AGENT_ENV_FLAG}=1 to run the socket-based agent tests."
    )
    for item in items:
        if item.nodeid.startswith(_AGENT_PREFIXES):
            item.add_marker(skip_agent)


@pytest.fixture
def agent_root(tmp_path):
    root = tmp_path / "agent-root"
    root.mkdir()
    return root


@pytest.fixture
def agent(agent_root):
    return AppendAgent(agent_root)


@pytest.fixture
def agent_channel(agent):
    """HTTP channel to an agent app served in-process by the FastAPI test client."""

    channel = HttpChannel(TestClient(create_app(agent)), poll_interval=0.01)
    yield channel
    channel.close()
