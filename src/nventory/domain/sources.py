"""Per-source descriptors.

Every source shares the :class:`SourceObservation` shape. A descriptor states
what a source reports, in which order its keys are tried during resolution,
which canonical fields it may overwrite and how its comparison view is laid
out. Adding a source means adding a :class:`SourceName` member, a descriptor
and a migration seeding its registry row.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from nventory.domain.model import MatchField, SourceName, SourceObservation

from .errors import InvalidObservationError, UnknownSourceError
from .normalization import norm_count, norm_mac, norm_text, norm_timestamp

if TYPE_CHECKING:
    from datetime import datetime

type Normalizer = Callable[[object], object]

FIELD_NORMALIZERS: Final[Mapping[str, Normalizer]] = MappingProxyType(
    {
        "host_name": norm_text,
        "mac": norm_mac,
        "ip_address": norm_text,
        "department": norm_text,
        "status": norm_text,
        "vulnerabilities_count": norm_count,
    }
)

# Collector column names and shorthands accepted for observation fields.
FIELD_ALIASES: Final[Mapping[str, str]] = MappingProxyType(
    {
        "collected_host_name": "host_name",
        "hostname": "host_name",
        "host": "host_name",
        "collected_mac": "mac",
        "mac_address": "mac",
        "collected_ip": "ip_address",
        "ip": "ip_address",
        "dept": "department",
        "vulnerabilities": "vulnerabilities_count",
    }
)


@dataclass(frozen=True, slots=True)
class SourceDescriptor:
    name: SourceName
    description: str
    view_prefix: str
    observed_fields: tuple[str, ...]
    match_keys: tuple[MatchField, ...]
    merged_fields: tuple[str, ...]
    canonical_columns: tuple[str, ...]
    reported_columns: tuple[str, ...]

    def normalize_fields(self, fields: Mapping[str, object]) -> dict[str, object]:
        """Map aliases, reject foreign keys and normalise values.

        Absent and blank values come back as ``None`` so that callers can tell
        "not reported" apart from nothing at all.
        """

        values: dict[str, object] = dict.fromkeys(self.observed_fields)
        seen: dict[str, str] = {}
        unexpected: list[str] = []
        for raw_key, raw_value in fields.items():
            key = FIELD_ALIASES.get(raw_key, raw_key)
            if key not in self.observed_fields:
                unexpected.append(raw_key)
                continue
            if key in seen:
                raise InvalidObservationError(
                    f"{self.name}: {raw_key!r} and {seen[key]!r} both set {key!r}"
                )
            seen[key] = raw_key
            values[key] = FIELD_NORMALIZERS[key](raw_value)
        if unexpected:
            allowed = ", ".join(self.observed_fields)
            raise InvalidObservationError(
                f"{self.name} does not report {', '.join(sorted(unexpected))} "
                f"(allowed: {allowed})"
            )
        return values

    def build_observation(
        self,
        fields: Mapping[str, object],
        *,
        observed_at: datetime | str,
        recorded_at: datetime | None = None,
        canonical_asset_id: int | None = None,
    ) -> SourceObservation:
        values = self.normalize_fields(fields)
        return SourceObservation(
            source=self.name,
            observed_at=norm_timestamp(observed_at),
            recorded_at=recorded_at,
            canonical_asset_id=canonical_asset_id,
            **values,  # pyright: ignore[reportArgumentType]
        )

    def match_candidates(
        self, observation: SourceObservation
    ) -> tuple[tuple[MatchField, str], ...]:
        """Ordered ``(field, value)`` lookups for this observation, nulls skipped."""

        candidates: list[tuple[MatchField, str]] = []
        for key in self.match_keys:
            value = getattr(observation, key.value)
            if value is not None:
                candidates.append((key, value))
        return tuple(candidates)

    def identity_keys(self, observation: SourceObservation) -> tuple[tuple[MatchField, str], ...]:
        """Every identifying value this observation may read or write.

        Locks are taken on all of them, not just the match keys, because a
        merge can make an asset matchable on a field another source looks up.
        """

        keys: set[tuple[MatchField, str]] = set()
        for field in MatchField:
            if field.value not in self.observed_fields:
                continue
            value = getattr(observation, field.value)
            if value is not None:
                keys.add((field, value))
        return tuple(sorted(keys))


SOURCE_DESCRIPTORS: Final[Mapping[SourceName, SourceDescriptor]] = MappingProxyType(
    {
        SourceName.FORESCOUT: SourceDescriptor(
            name=SourceName.FORESCOUT,
            description="Data collected from Forescout platform",
            view_prefix="forescout",
            observed_fields=("ip_address", "mac", "host_name"),
            match_keys=(MatchField.MAC, MatchField.HOST_NAME),
            merged_fields=("ip_address", "mac", "host_name"),
            canonical_columns=("host_name", "mac", "ip_address", "last_seen"),
            reported_columns=("host_name", "mac", "ip_address", "last_seen"),
        ),
        SourceName.ACTIVE_DIRECTORY: SourceDescriptor(
            name=SourceName.ACTIVE_DIRECTORY,
            description="Data collected from Active Directory",
            view_prefix="ad",
            observed_fields=("host_name", "ip_address", "department"),
            match_keys=(MatchField.HOST_NAME, MatchField.IP_ADDRESS),
            merged_fields=("host_name", "ip_address", "department"),
            canonical_columns=("host_name", "ip_address", "department", "last_seen"),
            reported_columns=("host_name", "ip_address", "department", "last_seen"),
        ),
        SourceName.SECURITY_CENTER: SourceDescriptor(
            name=SourceName.SECURITY_CENTER,
            description="Data collected from Security Center",
            view_prefix="sc",
            observed_fields=("ip_address", "mac", "vulnerabilities_count"),
            match_keys=(MatchField.MAC, MatchField.IP_ADDRESS),
            merged_fields=("ip_address", "mac"),
            canonical_columns=("host_name", "mac", "ip_address", "last_seen"),
            reported_columns=("mac", "ip_address", "last_seen", "vulnerabilities_count"),
        ),
        SourceName.HBSS: SourceDescriptor(
            name=SourceName.HBSS,
            description="Data collected from Host-Based Security System",
            view_prefix="hbss",
            observed_fields=("mac", "host_name", "status"),
            match_keys=(MatchField.MAC, MatchField.HOST_NAME),
            merged_fields=("mac", "host_name", "status"),
            canonical_columns=("host_name", "mac", "status", "last_seen"),
            reported_columns=("host_name", "mac", "last_seen", "status"),
        ),
    }
)


def parse_source(value: SourceName | str) -> SourceName:
    """Return the :class:`SourceName` for ``value`` or raise ``UnknownSourceError``.

    Only the exact registered names are accepted.
    """

    if isinstance(value, SourceName):
        return value
    try:
        return SourceName(value)
    except ValueError:
        raise UnknownSourceError(value) from None


def descriptor_for(source: SourceName | str) -> SourceDescriptor:
    return SOURCE_DESCRIPTORS[parse_source(source)]
