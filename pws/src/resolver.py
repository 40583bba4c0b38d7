"""
Device identity resolution.

The identity names both the JSON log file and the FHEM dummy device.  With
``DEVICE=auto`` it is derived from the station's ``ID`` query parameter;
any other setting is used literally.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Mapping

AUTO_DEVICE = "auto"
DEVICE_PREFIX = "weather_"
STATION_ID_FIELD = "ID"


def resolve_device(configured: str, readings: Mapping[str, object]) -> str:
    """Return the device identity for one upload.

    Args:
        configured: The ``device`` setting: ``"auto"`` or a literal name.
        readings: The uploaded readings.  Not modified.

    Returns:
        ``"weather_" + ID`` in auto mode (``"weather_"`` when the station
        sent no ``ID``), otherwise *configured* unchanged.
    """
    if configured != AUTO_DEVICE:
        return configured
    station_id = readings.get(STATION_ID_FIELD)
    return DEVICE_PREFIX + ("" if station_id is None else str(station_id))
