"""Ingestion layer.

Adapters that turn raw feed messages into normalized domain objects.
"""

from portais.ingestion.positions import FIELD_PRECEDENCE, normalize

__all__ = ["FIELD_PRECEDENCE", "normalize"]
