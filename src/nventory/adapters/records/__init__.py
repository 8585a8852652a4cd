"""Collector record parsing."""

from __future__ import annotations

from .schema import CollectorRecord, parse_record

__all__ = ["CollectorRecord", "parse_record"]
