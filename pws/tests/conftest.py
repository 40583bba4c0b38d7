"""
Shared test fixtures for the PWS gateway tests.

All gateway env vars are cleaned before each test and the working directory
is moved to a temporary directory so no ``.env`` file is picked up.  The
``settings`` fixture builds GatewaySettings with every network sink disabled
and the JSON log pointed at ``tmp_path``; tests switch features on as needed.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from pws.src.config import GatewaySettings

# All GatewaySettings environment variable names, used for cleanup.
_ALL_GATEWAY_ENV_VARS = (
    "DEVICE",
    "JSON_DATA_LOG",
    "FHEM_DATA_LOG",
    "CONVERT_DATA",
    "FORWARD_DATA",
    "FHEM_SERVER",
    "FHEM_PORT",
    "JSON_DATA_LOGDIR",
    "FORWARD_SERVER",
    "FORWARD_TIMEOUT_S",
    "FHEM_TIMEOUT_S",
    "LISTEN_HOST",
    "LISTEN_PORT",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_gateway_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Remove all gateway env vars and isolate from .env files before each test."""
    for var in _ALL_GATEWAY_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def logdir(tmp_path: Path) -> Path:
    """Directory for JSON log files."""
    path = tmp_path / "logs"
    path.mkdir()
    return path


@pytest.fixture()
def make_settings(logdir: Path) -> Callable[..., GatewaySettings]:
    """Factory for GatewaySettings with network sinks off by default."""

    def _make(**overrides: object) -> GatewaySettings:
        values: dict[str, object] = {
            "device": "auto",
            "json_data_log": True,
            "fhem_data_log": False,
            "convert_data": True,
            "forward_data": False,
            "json_data_logdir": str(logdir),
            "forward_server": "upstream.example.com",
            "forward_timeout_s": 1.0,
            "fhem_timeout_s": 1.0,
        }
        values.update(overrides)
        return GatewaySettings(**values)

    return _make


@pytest.fixture()
def client(make_settings: Callable[..., GatewaySettings]) -> Generator[TestClient, None, None]:
    """FastAPI TestClient with relay and FHEM disabled.

    Uses a context manager so the application lifespan runs.
    """
    from pws.src.api import create_app

    with TestClient(create_app(make_settings())) as test_client:
        yield test_client
