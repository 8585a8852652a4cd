"""Source registry entries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from .enums import SourceName


@dataclass(eq=False, kw_only=True)
class DataSource:
    """Provisioned once per source; only ``last_update`` ever changes."""

    name: SourceName
    description: str | None = None
    last_update: datetime | None = None
    id: int | None = None

    def mark_updated(self, now: datetime) -> None:
        self.last_update = now
