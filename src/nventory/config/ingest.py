"""Ingestion tuning values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .env import env_float, env_int

DEFAULT_MAX_RESOLUTION_ATTEMPTS: Final[int] = 3
DEFAULT_LOCK_TIMEOUT_SECONDS: Final[float] = 30.0


@dataclass(frozen=True, slots=True)
class IngestConfig:
    """Bounds for one ingestion call.

    ``max_resolution_attempts`` caps how often a detected creation race is
    re-resolved before it is surfaced; ``lock_timeout_seconds`` caps the wait
    for an identity lock held by a concurrent ingestion.
    """

    max_resolution_attempts: int = DEFAULT_MAX_RESOLUTION_ATTEMPTS
    lock_timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS


def get_ingest_config() -> IngestConfig:
    return IngestConfig(
        max_resolution_attempts=env_int(
            "NVENTORY_MAX_RESOLUTION_ATTEMPTS",
            DEFAULT_MAX_RESOLUTION_ATTEMPTS,
            minimum=1,
        ),
        lock_timeout_seconds=env_float(
            "NVENTORY_LOCK_TIMEOUT_SECONDS",
            DEFAULT_LOCK_TIMEOUT_SECONDS,
            minimum=0.0,
        ),
    )
