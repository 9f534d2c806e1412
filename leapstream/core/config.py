"""
leapstream — connection / runtime settings

Defaults match the tracking service: local websocket on port 6437,
protocol v3, 100 ms heartbeat, 60 frames of history.
Optionally overridden from a YAML file and LEAPSTREAM_HOST.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Optional, Union

import yaml


HOST_ENV = "LEAPSTREAM_HOST"


@dataclass(frozen=True)
class ConnectionSettings:
    host: str = "localhost"
    port: int = 6437
    protocol_version: int = 3
    secure: bool = False
    reconnect: bool = True
    reconnect_delay_s: float = 1.0


@dataclass(frozen=True)
class HeartbeatSettings:
    enabled: bool = True
    interval_ms: int = 100


@dataclass(frozen=True)
class HistorySettings:
    max_frames: int = 60


@dataclass(frozen=True)
class Settings:
    connection: ConnectionSettings = field(default_factory=ConnectionSettings)
    heartbeat: HeartbeatSettings = field(default_factory=HeartbeatSettings)
    history: HistorySettings = field(default_factory=HistorySettings)

    @property
    def url(self) -> str:
        c = self.connection
        scheme = "wss" if c.secure else "ws"
        return f"{scheme}://{c.host}:{c.port}/v{c.protocol_version}.json"

    def with_host(self, host: Optional[str]) -> "Settings":
        if not host:
            return self
        return replace(self, connection=replace(self.connection, host=host))


DEFAULT_SETTINGS = Settings()


def _section(cls, data):
    """Build a settings dataclass from a dict, ignoring unknown keys."""
    if not data:
        return cls()
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in names})


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings from YAML. Missing file (or no path) gives defaults.

    Layout:
        connection: {host: ..., port: ...}
        heartbeat: {interval_ms: ...}
        history: {max_frames: ...}
    """
    data = {}
    if path is not None:
        p = Path(path).expanduser()
        if p.exists():
            with open(p, "r") as f:
                data = yaml.safe_load(f) or {}

    settings = Settings(
        connection=_section(ConnectionSettings, data.get("connection")),
        heartbeat=_section(HeartbeatSettings, data.get("heartbeat")),
        history=_section(HistorySettings, data.get("history")),
    )
    return settings.with_host(os.environ.get(HOST_ENV))
