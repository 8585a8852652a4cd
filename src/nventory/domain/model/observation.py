"""Ledger entries: one row per reading ingested from a source."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from datetime import datetime

    from .enums import SourceName


@dataclass(eq=False, kw_only=True)
class SourceObservation:
    """What one source reported about one device at ``observed_at``.

    All four sources share this shape; which attributes a given source fills
    in is decided by its descriptor (see ``nventory.domain.sources``).
    Rows are append-only. ``canonical_asset_id`` is cleared by the store if
    the referenced asset is deleted later on.
    """

    OBSERVED_FIELDS: ClassVar[tuple[str, ...]] = (
        "host_name",
        "mac",
        "ip_address",
        "department",
        "status",
        "vulnerabilities_count",
    )

    source: SourceName
    observed_at: datetime
    recorded_at: datetime | None = None

    id: int | None = None
    canonical_asset_id: int | None = None

    host_name: str | None = None
    mac: str | None = None
    ip_address: str | None = None
    department: str | None = None
    status: str | None = None
    vulnerabilities_count: int | None = None

    def value_of(self, field_name: str) -> object:
        if field_name == "last_seen":
            return self.observed_at
        return getattr(self, field_name)
