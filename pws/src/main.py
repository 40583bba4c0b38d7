"""
Entry point for the PWS ingest gateway.

Configures structured JSON logging, loads and validates settings, logs a
config summary, and serves the FastAPI app with uvicorn.  Invalid
configuration is fatal: it is logged and the process exits before binding
the listener.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-011)

TODO:
- None
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

import uvicorn

from pws.src.config import ConfigurationInvalid, GatewaySettings, load_settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for the gateway.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    Uvicorn's own loggers propagate to it.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Startup config logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: GatewaySettings) -> None:
    """Log the effective configuration at startup."""
    logger.info(
        "PWS gateway starting with config: "
        "device=%s, convert_data=%s, json_data_log=%s, json_data_logdir=%s, "
        "forward_data=%s, forward_server=%s, forward_timeout_s=%s, "
        "fhem_data_log=%s, fhem_server=%s, fhem_port=%s, fhem_timeout_s=%s, "
        "listen=%s:%s",
        settings.device,
        settings.convert_data,
        settings.json_data_log,
        settings.json_data_logdir,
        settings.forward_data,
        settings.forward_server,
        settings.forward_timeout_s,
        settings.fhem_data_log,
        settings.fhem_server,
        settings.fhem_port,
        settings.fhem_timeout_s,
        settings.listen_host,
        settings.listen_port,
    )


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    """Synchronous entrypoint: validate config, then serve until stopped."""
    configure_logging()

    try:
        settings = load_settings()
    except ConfigurationInvalid:
        logger.error("Refusing to start", exc_info=True)
        raise SystemExit(2) from None

    configure_logging(settings.log_level)
    log_config_summary(settings)

    from pws.src.api import create_app

    uvicorn.run(
        create_app(settings),
        host=settings.listen_host,
        port=settings.listen_port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
