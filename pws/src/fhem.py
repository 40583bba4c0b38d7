"""
FHEM telnet sink that mirrors a ReadingSet into a dummy device.

Opens a plain TCP session to the FHEM telnet port and sends, one CR+LF
terminated command per line::

    define <device> dummy
    setreading <device> <field> <value>     (once per field, in order)
    exit

Nothing is read back; FHEM answers ``define`` for an existing device with an
error message that is simply ignored.  Values are embedded as-is: a value
containing a space or a line break corrupts the command stream.  Escaping
would change what existing FHEM setups receive, so it is not done.

The whole session (connect, write, close) is bounded by a timeout so a hung
FHEM server cannot stall an upload.

Operations:
- build_commands(device, readings): The command lines for one upload.
- sync(host, port, device, readings): Send them, returning a SinkOutcome.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-008)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Mapping

from pws.src.models import FailureCause, SinkOutcome

logger = logging.getLogger(__name__)

SINK_NAME = "fhem"

LINE_END = "\r\n"

_DEFAULT_TIMEOUT_S = 5.0


def build_commands(device: str, readings: Mapping[str, object]) -> list[str]:
    """Return the FHEM command lines (without terminators) for one upload."""
    commands = [f"define {device} dummy"]
    commands.extend(f"setreading {device} {name} {value}" for name, value in readings.items())
    commands.append("exit")
    return commands


class FhemSink:
    """Fire-and-forget writer for the FHEM telnet command port.

    Each call opens and closes its own connection; nothing is pooled.

    Args:
        timeout_s: Deadline in seconds for the whole session.

    Usage::

        fhem = FhemSink(timeout_s=5.0)
        outcome = await fhem.sync("127.0.0.1", 7072, "weather_KXYZ1", readings)
    """

    def __init__(self, timeout_s: float = _DEFAULT_TIMEOUT_S) -> None:
        self._timeout_s = timeout_s

    async def sync(
        self,
        host: str,
        port: int,
        device: str,
        readings: Mapping[str, object],
    ) -> SinkOutcome:
        """Send *readings* to FHEM as dummy-device readings.

        Returns:
            ``success`` once all commands are written and the connection
            is closed, otherwise ``failed`` with cause ``timeout`` or
            ``connection``.
        """
        payload = "".join(line + LINE_END for line in build_commands(device, readings))

        try:
            await asyncio.wait_for(
                self._send(host, port, payload.encode("utf-8")),
                timeout=self._timeout_s,
            )
        except TimeoutError:
            logger.warning(
                "FHEM sync to %s:%s timed out after %.1fs",
                host,
                port,
                self._timeout_s,
            )
            return SinkOutcome.failed(
                SINK_NAME,
                FailureCause.TIMEOUT,
                f"no completion within {self._timeout_s}s",
            )
        except OSError as exc:
            logger.warning("FHEM sync to %s:%s failed: %s", host, port, exc)
            return SinkOutcome.failed(SINK_NAME, FailureCause.CONNECTION, str(exc))

        logger.info(
            "Synced %d readings to FHEM device %s at %s:%s",
            len(readings),
            device,
            host,
            port,
        )
        return SinkOutcome.success(SINK_NAME)

    @staticmethod
    async def _send(host: str, port: int, payload: bytes) -> None:
        _reader, writer = await asyncio.open_connection(host, port)
        try:
            writer.write(payload)
            await writer.drain()
        finally:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()
