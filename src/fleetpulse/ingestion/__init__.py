"""Ingestion layer.

Turns wire payloads from telemetry sources into decoded mappings and
decides whether they carry the fields the pipeline requires.
"""

from fleetpulse.ingestion.decode import decode_payload
from fleetpulse.ingestion.validate import validate

__all__ = ["decode_payload", "validate"]
