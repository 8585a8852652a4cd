"""Public domain model surface."""

from __future__ import annotations

from nventory.domain.model.asset import NEVER_SEEN, CanonicalAsset
from nventory.domain.model.enums import MatchField, SourceName
from nventory.domain.model.observation import SourceObservation
from nventory.domain.model.source import DataSource

__all__ = [
    "NEVER_SEEN",
    "CanonicalAsset",
    "DataSource",
    "MatchField",
    "SourceName",
    "SourceObservation",
]
