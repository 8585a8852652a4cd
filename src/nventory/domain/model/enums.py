"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class SourceName(StrEnum):
    """The closed set of observation sources feeding the inventory."""

    FORESCOUT = "Forescout"
    ACTIVE_DIRECTORY = "ActiveDirectory"
    SECURITY_CENTER = "SecurityCenter"
    HBSS = "HBSS"


class MatchField(StrEnum):
    """Canonical asset fields an observation can be matched on."""

    MAC = "mac"
    HOST_NAME = "host_name"
    IP_ADDRESS = "ip_address"
