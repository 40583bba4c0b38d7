"""
Gateway configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Names are matched case-insensitively, so ``FHEM_SERVER`` and ``FHEM_server``
both set ``fhem_server``.  Defaults reproduce the stock upload-script setup:
every feature on, FHEM on localhost:7072, logs under /var/data.

Settings are built once at startup and passed to the pipeline; nothing reads
them from module globals.

CHANGELOG:
- 2026-10-19: Add relay/FHEM timeouts and listener settings
- 2026-10-19: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

import logging

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings


class ConfigurationInvalid(RuntimeError):
    """Raised at startup when the environment does not form valid settings."""


class GatewaySettings(BaseSettings):
    """PWS ingest gateway configuration.

    All values are loaded from environment variables (or a ``.env`` file)
    and every one has a default, so an empty environment is valid.

    Attributes:
        device: ``"auto"`` to name the device ``weather_<ID>`` from the
            upload, or a literal device name.
        json_data_log: Append each reading to the per-device JSON log.
        fhem_data_log: Mirror each reading into FHEM.
        convert_data: Add metric conversions to each reading.
        forward_data: Relay each upload to ``forward_server``.
        fhem_server: FHEM telnet host.
        fhem_port: FHEM telnet port.
        json_data_logdir: Directory holding ``<device>.json`` log files.
        forward_server: Upstream collector host (optionally ``host:port``).
        forward_timeout_s: Deadline for the relay request, in seconds.
        fhem_timeout_s: Deadline for one FHEM session, in seconds.
        listen_host: Interface the HTTP listener binds to.
        listen_port: Port the HTTP listener binds to.
        log_level: Root log level name.
    """

    device: str = "auto"
    json_data_log: bool = True
    fhem_data_log: bool = True
    convert_data: bool = True
    forward_data: bool = True
    fhem_server: str = "127.0.0.1"
    fhem_port: int = 7072
    json_data_logdir: str = "/var/data"
    forward_server: str = "rtupdate.wunderground.com"
    forward_timeout_s: float = 10.0
    fhem_timeout_s: float = 5.0
    listen_host: str = "0.0.0.0"
    listen_port: int = 8080
    log_level: str = "INFO"

    @field_validator("fhem_port", "listen_port")
    @classmethod
    def port_must_be_valid(cls, v: int) -> int:
        """Validate TCP ports are in the valid range."""
        if v < 1 or v > 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("forward_timeout_s", "fhem_timeout_s")
    @classmethod
    def timeout_must_be_positive(cls, v: float) -> float:
        """Validate timeouts are strictly positive; sinks must not block forever."""
        if v <= 0:
            raise ValueError("timeout must be > 0")
        return v

    @field_validator("device")
    @classmethod
    def device_must_not_be_blank(cls, v: str) -> str:
        """Reject an empty device name; it would produce a ``.json`` log file."""
        if not v.strip():
            raise ValueError("DEVICE must be 'auto' or a non-empty device name")
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Validate the log level is a standard logging level name."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown LOG_LEVEL '{v}'")
        return level

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def load_settings() -> GatewaySettings:
    """Build settings from the environment.

    Raises:
        ConfigurationInvalid: If any value fails validation (for example a
            port that is not a number).
    """
    try:
        return GatewaySettings()
    except ValidationError as exc:
        raise ConfigurationInvalid(f"Invalid gateway configuration: {exc}") from exc
