"""
PWS ingest gateway package.

Receives readings pushed by personal weather stations over the Wunderground
upload protocol, converts units, appends each reading to a per-device JSON
log, relays the raw upload to an upstream collector, and mirrors the readings
into an FHEM server as a dummy device.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-001)

TODO:
- None
"""
