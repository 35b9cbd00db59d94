"""Agent connection settings (YAML file + environment overrides)."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, field_validator

ENV_AGENT = "BUILDTEE_AGENT"
ENV_AUTHKEY = "BUILDTEE_AUTHKEY"
ENV_ROOT = "BUILDTEE_ROOT"

DEFAULT_PORT = 7391


class AgentSettings(BaseModel):
    """Where an append agent listens and which directory it serves."""

    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    authkey: str | None = None
    root: Path = Path(".")
    poll_interval: float = 0.05
    timeout: float = 30.0
    handle_ttl: float = 300.0

    @field_validator("port")
    @classmethod
    def _port_in_range(cls, value: int) -> int:
        if not 0 <= value <= 65535:
            raise ValueError("port must be between 0 and 65535")
        return value

    @field_validator("poll_interval", "timeout", "handle_ttl")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("poll_interval, timeout and handle_ttl must be positive")
        return value

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


def parse_address(value: str) -> tuple[str, int]:
    """Split ``host:port`` (``:port`` means localhost)."""
    host, sep, port = value.strip().rpartition(":")
    if not sep or not port:
        raise ValueError(f"Agent address must be in host:port format (got '{value}')")
    try:
        port_number = int(port)
    except ValueError as exc:
        raise ValueError(f"Invalid port in agent address '{value}'") from exc
    return host.strip("[]") or "127.0.0.1", port_number


def load_settings(
    path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    **overrides: Any,
) -> AgentSettings:
    """Merge defaults, an optional YAML file, the environment and explicit overrides."""
    data: dict[str, Any] = {}
    if path is not None:
        raw = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Agent config {path} must contain a mapping")
        agent_section = raw.get("agent", raw)
        if not isinstance(agent_section, dict):
            raise ValueError(f"'agent' section of {path} must be a mapping")
        data.update(agent_section)
    env = os.environ if env is None else env
    if env.get(ENV_AGENT):
        data["host"], data["port"] = parse_address(env[ENV_AGENT])
    if env.get(ENV_AUTHKEY):
        data["authkey"] = env[ENV_AUTHKEY]
    if env.get(ENV_ROOT):
        data["root"] = env[ENV_ROOT]
    data.update({key: value for key, value in overrides.items() if value is not None})
    return AgentSettings.model_validate(data)


__all__ = ["AgentSettings", "DEFAULT_PORT", "load_settings", "parse_address"]
