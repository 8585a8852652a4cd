"""The canonical asset: one authoritative record per physical device."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import ClassVar, Final

# Stand-in for an unset ``last_seen`` when comparing observation timestamps.
NEVER_SEEN: Final[datetime] = datetime.min.replace(tzinfo=UTC)


@dataclass(eq=False, kw_only=True)
class CanonicalAsset:
    """Ground-truth row for one device.

    ``id`` is assigned by the store on first flush and never changes.
    ``last_seen`` only moves forward; use :meth:`observe` rather than
    assigning it directly.
    """

    DESCRIPTIVE_FIELDS: ClassVar[tuple[str, ...]] = (
        "host_name",
        "mac",
        "ip_address",
        "make",
        "model",
        "department",
        "status",
        "notes",
        "location",
    )
    EDITABLE_FIELDS: ClassVar[frozenset[str]] = frozenset(
        ("serial_number", *DESCRIPTIVE_FIELDS)
    )

    id: int | None = None
    serial_number: str | None = None

    host_name: str | None = None
    mac: str | None = None
    ip_address: str | None = None
    make: str | None = None
    model: str | None = None
    department: str | None = None
    status: str | None = None
    notes: str | None = None
    location: str | None = None

    last_seen: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def observe(self, observed_at: datetime) -> bool:
        """Advance ``last_seen`` to ``observed_at`` if it is newer.

        Returns whether the timestamp moved.
        """

        current = self.last_seen or NEVER_SEEN
        if observed_at > current:
            self.last_seen = observed_at
            return True
        return False

    def coalesce(self, field_name: str, value: object) -> bool:
        """Overwrite ``field_name`` with ``value`` unless ``value`` is absent."""

        if field_name not in self.DESCRIPTIVE_FIELDS:
            raise ValueError(f"Not a mergeable asset field: {field_name}")
        if value is None:
            return False
        if getattr(self, field_name) == value:
            return False
        setattr(self, field_name, value)
        return True

    def touch(self, now: datetime) -> None:
        if self.created_at is None:
            self.created_at = now
        self.updated_at = now

    def snapshot(self) -> dict[str, object]:
        """Plain mapping of all persisted values (for output and assertions)."""

        return {
            "id": self.id,
            "serial_number": self.serial_number,
            **{name: getattr(self, name) for name in self.DESCRIPTIVE_FIELDS},
            "last_seen": self.last_seen,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
