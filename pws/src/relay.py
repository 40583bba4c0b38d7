"""
Relay of the raw upload to an upstream PWS collector.

Re-issues the station's original GET request against
``http://{FORWARD_SERVER}{path and query}`` so the station keeps reporting to
its public network while this gateway sits in front of it.  The fetch is
best-effort and bounded by a timeout: an unreachable or slow upstream is
reported as a failed outcome and never delays the rest of the pipeline
beyond ``FORWARD_TIMEOUT_S``.

Operations:
- build_relay_url(server, request_target): Compose the upstream URL.
- fetch(url): GET the upstream URL, returning a SinkOutcome.

CHANGELOG:
- 2026-10-19: Report non-2xx upstream responses as FailureCause.STATUS
- 2026-10-19: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import logging

import httpx

from pws.src.models import FailureCause, SinkOutcome

logger = logging.getLogger(__name__)

SINK_NAME = "relay"

_DEFAULT_TIMEOUT_S = 10.0


def build_relay_url(server: str, request_target: str) -> str:
    """Return the upstream URL for *request_target* (path plus query)."""
    if not request_target.startswith("/"):
        request_target = "/" + request_target
    return f"http://{server}{request_target}"


class RelaySink:
    """Best-effort HTTP GET relay to the upstream collector.

    Args:
        timeout_s: Overall timeout for connect, write and read, in seconds.
        transport: Optional httpx transport, used to point the relay at an
            in-process handler.

    Usage::

        relay = RelaySink(timeout_s=5.0)
        outcome = await relay.fetch(
            build_relay_url("rtupdate.wunderground.com", "/weatherstation/updateweatherstation.php?ID=X")
        )
        if outcome.ok:
            print(outcome.response)
    """

    def __init__(
        self,
        timeout_s: float = _DEFAULT_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout_s = timeout_s
        self._transport = transport

    async def fetch(self, url: str) -> SinkOutcome:
        """GET *url* and capture the response body.

        Returns:
            ``success`` with the body text on a 2xx response, otherwise
            ``failed`` with cause ``status`` (non-2xx), ``timeout`` or
            ``connection``.
        """
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_s,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException as exc:
            logger.warning("Relay to %s timed out after %.1fs: %s", url, self._timeout_s, exc)
            return SinkOutcome.failed(SINK_NAME, FailureCause.TIMEOUT, str(exc) or "timeout")
        except httpx.HTTPError as exc:
            logger.warning("Relay to %s failed (network error): %s", url, exc)
            return SinkOutcome.failed(SINK_NAME, FailureCause.CONNECTION, str(exc))

        if not response.is_success:
            logger.warning("Relay to %s failed (HTTP %d)", url, response.status_code)
            return SinkOutcome.failed(
                SINK_NAME,
                FailureCause.STATUS,
                f"HTTP {response.status_code}",
            )

        logger.info("Relayed upload to %s (HTTP %d)", url, response.status_code)
        return SinkOutcome.success(SINK_NAME, response.text)
