"""
Ingest pipeline: one station upload in, one report out.

For every upload the pipeline:

1. builds a ReadingSet from the query parameters, in their original order;
2. relays the raw request upstream (``FORWARD_DATA``) and, on success, adds
   ``forward_url`` and ``forward`` (the upstream body) to the readings;
3. resolves the device identity from the readings as uploaded;
4. adds metric conversions (``CONVERT_DATA``);
5. serializes the readings to JSON;
6. appends the JSON to ``<logdir>/<device>.json`` (``JSON_DATA_LOG``);
7. mirrors the readings, plus the serialized JSON, the request URL and the
   effective settings, into FHEM (``FHEM_DATA_LOG``).

Sinks are isolated from each other: each one reports a SinkOutcome, and an
unexpected exception inside a sink is logged and recorded as a failure
instead of propagating.  An unexpected error while converting keeps the
unconverted readings; one while serializing fails only the JSON log.  The station always receives the same
acknowledgment; it has no way to act on sink errors.

The log only ever receives the plain readings of step 5.  The settings
fields are added strictly afterwards and only reach FHEM.

CHANGELOG:
- 2026-10-19: Contain conversion and serialization errors
- 2026-10-19: Initial creation (STORY-009)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING

from pws.src.converter import convert
from pws.src.fhem import SINK_NAME as FHEM_SINK
from pws.src.fhem import FhemSink
from pws.src.json_log import SINK_NAME as JSON_LOG_SINK
from pws.src.json_log import JsonLogSink, log_path
from pws.src.models import FailureCause, PipelineReport, ReadingSet, SinkOutcome
from pws.src.relay import SINK_NAME as RELAY_SINK
from pws.src.relay import RelaySink, build_relay_url
from pws.src.resolver import resolve_device
from pws.src.serializer import serialize

if TYPE_CHECKING:
    from pws.src.config import GatewaySettings

logger = logging.getLogger(__name__)

FORWARD_URL_FIELD = "forward_url"
FORWARD_FIELD = "forward"


def _flag(value: bool) -> int:
    return 1 if value else 0


class IngestPipeline:
    """Converts and dispatches station uploads according to *settings*.

    The pipeline holds no per-upload state, so one instance serves any number
    of concurrent uploads.

    Args:
        settings: Effective gateway settings.
        json_log: JSON log sink (default: a new :class:`JsonLogSink`).
        relay: Upstream relay (default: a :class:`RelaySink` with
            ``settings.forward_timeout_s``).
        fhem: FHEM sink (default: a :class:`FhemSink` with
            ``settings.fhem_timeout_s``).
    """

    def __init__(
        self,
        settings: GatewaySettings,
        *,
        json_log: JsonLogSink | None = None,
        relay: RelaySink | None = None,
        fhem: FhemSink | None = None,
    ) -> None:
        self._settings = settings
        self._json_log = json_log if json_log is not None else JsonLogSink()
        self._relay = relay if relay is not None else RelaySink(settings.forward_timeout_s)
        self._fhem = fhem if fhem is not None else FhemSink(settings.fhem_timeout_s)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(
        self,
        query: Iterable[tuple[str, str]],
        *,
        request_target: str,
        host: str,
    ) -> PipelineReport:
        """Process one upload.

        Args:
            query: Query parameters as ``(name, value)`` pairs, in request
                order.
            request_target: Original request path plus query string, as
                relayed upstream.
            host: ``Host`` header of the request, used for the ``url`` field.

        Returns:
            A :class:`PipelineReport` with one outcome per sink.  Never
            raises for sink or conversion failures.
        """
        settings = self._settings
        uploaded = ReadingSet(query)
        readings = uploaded
        outcomes: dict[str, SinkOutcome] = {}

        # Relay
        if settings.forward_data:
            forward_url = build_relay_url(settings.forward_server, request_target)
            outcome = await self._guard(RELAY_SINK, lambda: self._relay.fetch(forward_url))
            if outcome.ok:
                readings = readings.with_fields(
                    [(FORWARD_URL_FIELD, forward_url), (FORWARD_FIELD, outcome.response or "")]
                )
            outcomes[RELAY_SINK] = outcome
        else:
            outcomes[RELAY_SINK] = SinkOutcome.skipped(RELAY_SINK)

        # Identity comes from the upload itself, never from the relay reply.
        device = resolve_device(settings.device, uploaded)

        if settings.convert_data:
            readings = self._convert(readings)

        payload = self._serialize(readings)
        logfile = log_path(settings.json_data_logdir, device)

        # JSON log
        if not settings.json_data_log:
            outcomes[JSON_LOG_SINK] = SinkOutcome.skipped(JSON_LOG_SINK)
        elif payload is None:
            outcomes[JSON_LOG_SINK] = SinkOutcome.failed(
                JSON_LOG_SINK, FailureCause.IO, "readings could not be serialized"
            )
        else:
            outcomes[JSON_LOG_SINK] = await self._guard(
                JSON_LOG_SINK,
                lambda: asyncio.to_thread(self._json_log.append, logfile, payload),
            )

        # FHEM
        if settings.fhem_data_log:
            annotated = readings.with_fields(
                self._run_metadata(
                    payload=payload,
                    url=f"http://{host}{request_target}",
                    device=device,
                    logfile=str(logfile),
                )
            )
            outcomes[FHEM_SINK] = await self._guard(
                FHEM_SINK,
                lambda: self._fhem.sync(settings.fhem_server, settings.fhem_port, device, annotated),
            )
        else:
            outcomes[FHEM_SINK] = SinkOutcome.skipped(FHEM_SINK)

        report = PipelineReport(device=device, outcomes=outcomes)
        failed = report.failed()
        if failed:
            for name in failed:
                outcome = outcomes[name]
                logger.warning(
                    "Sink %s failed for device=%s: cause=%s detail=%s",
                    name,
                    device,
                    outcome.cause,
                    outcome.detail,
                )
        else:
            logger.info("Ingested %d readings for device=%s", len(readings), device)
        return report

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _convert(readings: ReadingSet) -> ReadingSet:
        """Add conversions, falling back to the unconverted readings on error."""
        try:
            return convert(readings)
        except Exception:
            logger.error(
                "Conversion raised unexpectedly; keeping unconverted readings",
                exc_info=True,
            )
            return readings

    @staticmethod
    def _serialize(readings: ReadingSet) -> bytes | None:
        """Serialize *readings*, or return ``None`` if they cannot be encoded."""
        try:
            return serialize(readings)
        except Exception:
            logger.error("Serialization raised unexpectedly", exc_info=True)
            return None

    def _run_metadata(
        self,
        *,
        payload: bytes | None,
        url: str,
        device: str,
        logfile: str,
    ) -> list[tuple[str, str | int]]:
        """Fields describing this upload and the settings it ran under."""
        settings = self._settings
        return [
            ("json", payload.decode("utf-8") if payload is not None else ""),
            ("url", url),
            ("settings_device", device),
            ("settings_convert_data", _flag(settings.convert_data)),
            ("settings_json_data_log", _flag(settings.json_data_log)),
            ("settings_json_data_logdir", settings.json_data_logdir),
            ("settings_json_data_logfile", logfile),
            ("settings_fhem_data_log", _flag(settings.fhem_data_log)),
            ("settings_forward_data", _flag(settings.forward_data)),
            ("settings_forward_server", settings.forward_server),
            ("settings_FHEM_server", settings.fhem_server),
            ("settings_FHEM_port", settings.fhem_port),
        ]

    @staticmethod
    async def _guard(
        sink: str,
        call: Callable[[], Awaitable[SinkOutcome]],
    ) -> SinkOutcome:
        """Run one sink call, turning any escaped exception into a failure."""
        try:
            return await call()
        except Exception as exc:
            logger.error("Sink %s raised unexpectedly", sink, exc_info=True)
            return SinkOutcome.failed(sink, FailureCause.IO, f"{type(exc).__name__}: {exc}")
