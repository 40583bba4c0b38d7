"""
Append-only per-device JSON log.

Each upload is appended to ``{JSON_DATA_LOGDIR}/{device}.json`` as one compact
JSON object with no separator, so the file is a run of concatenated JSON
values (``{...}{...}{...}``), not a JSON array and not NDJSON.  Existing
consumers of the log depend on this layout.

The device identity may come from the station's ``ID`` parameter, so path
separators in it are replaced with ``_`` before it becomes a file name.  The
log file therefore always lands directly inside the log directory.

Appends to the same path are serialized with a lock and written in a single
``write`` call, so two concurrent uploads for one device always leave two
complete entries and never interleave.  Locks come from a fixed pool indexed
by a hash of the path, so a client sending ever-new IDs cannot grow the
sink's memory.

Operations:
- log_path(logdir, device): File the device's readings are appended to.
- append(path, data): Append bytes to the file, returning a SinkOutcome.

CHANGELOG:
- 2026-10-19: Replace path separators in device names; fixed lock pool
- 2026-10-19: Initial creation (STORY-006)

TODO:
- None
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

from pws.src.models import FailureCause, SinkOutcome

logger = logging.getLogger(__name__)

SINK_NAME = "json_log"

LOCK_POOL_SIZE = 64

_PATH_SEPARATORS = str.maketrans({"/": "_", "\\": "_"})


def log_path(logdir: str | Path, device: str) -> Path:
    """Return the log file path for *device* directly under *logdir*.

    ``/`` and ``\\`` in *device* are replaced with ``_``, so ``../x`` maps to
    ``<logdir>/.._x.json``.
    """
    return Path(logdir) / f"{device.translate(_PATH_SEPARATORS)}.json"


class JsonLogSink:
    """Thread-safe appender for the per-device JSON log.

    The sink never raises: open or write errors are returned as a
    ``failed`` :class:`SinkOutcome` with cause ``io``.  The log directory is
    not created; a missing directory is reported like any other I/O error.

    Usage::

        sink = JsonLogSink()
        outcome = sink.append("/var/data/weather_KXYZ1.json", b'{"tempf":"70"}')
    """

    def __init__(self) -> None:
        self._locks = tuple(threading.Lock() for _ in range(LOCK_POOL_SIZE))

    def _lock_for(self, path: Path) -> threading.Lock:
        # Distinct paths may share a lock; one path never uses two.
        return self._locks[hash(os.path.abspath(path)) % LOCK_POOL_SIZE]

    def append(self, path: str | Path, data: bytes) -> SinkOutcome:
        """Append *data* to *path*.

        Args:
            path: Target log file.
            data: One serialized reading.

        Returns:
            ``success`` after the bytes are written, or ``failed`` with
            cause ``io`` if the file could not be opened or written.
        """
        path = Path(path)
        try:
            with self._lock_for(path), path.open("ab") as fh:
                fh.write(data)
        except OSError as exc:
            logger.warning("JSON log append to %s failed: %s", path, exc)
            return SinkOutcome.failed(SINK_NAME, FailureCause.IO, str(exc))

        logger.debug("Appended %d bytes to %s", len(data), path)
        return SinkOutcome.success(SINK_NAME)
