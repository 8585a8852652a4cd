"""Identity resolution: map one observation to one canonical asset.

Matching policy:
- a caller-supplied asset id is used verbatim, no lookup
- otherwise the source's match keys are tried in order; the first key that
  finds anything wins, and among several assets sharing that value the
  lowest id (oldest) is taken
- NULL never matches NULL: keys the observation does not carry are skipped
- no match -> a new asset seeded from the observation's identifying fields

When two keys point at different assets the first key wins; the second
candidate is not consulted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from nventory.domain.model import CanonicalAsset, MatchField

from .errors import ResolutionRace

if TYPE_CHECKING:
    from datetime import datetime

    from nventory.domain.model import SourceObservation
    from nventory.domain.ports.persistence import AssetRepository
    from nventory.domain.sources import SourceDescriptor

log = logging.getLogger(__name__)


class ResolutionStatus(StrEnum):
    SUPPLIED = "supplied"
    MATCHED = "matched"
    CREATED = "created"


@dataclass(slots=True, kw_only=True)
class Resolution:
    asset_id: int
    status: ResolutionStatus
    matched_key: tuple[MatchField, str] | None = None

    @property
    def created(self) -> bool:
        return self.status is ResolutionStatus.CREATED


def resolve_asset(
    descriptor: SourceDescriptor,
    observation: SourceObservation,
    *,
    assets: AssetRepository,
    now: datetime,
) -> Resolution:
    """Find or create the canonical asset ``observation`` belongs to."""

    if observation.canonical_asset_id is not None:
        log.debug(
            "%s observation pinned to asset %s", descriptor.name, observation.canonical_asset_id
        )
        return Resolution(
            asset_id=observation.canonical_asset_id,
            status=ResolutionStatus.SUPPLIED,
        )

    for key, value in descriptor.match_candidates(observation):
        match = assets.find_first(key, value)
        if match is None or match.id is None:
            continue
        log.debug("%s observation matched asset %s on %s=%s", descriptor.name, match.id, key, value)
        return Resolution(
            asset_id=match.id,
            status=ResolutionStatus.MATCHED,
            matched_key=(key, value),
        )

    asset = _new_asset_from(observation, now=now)
    assets.add(asset)
    if asset.id is None:
        raise RuntimeError("Asset repository did not assign an id on add")
    log.info(
        "Created asset %s from %s (mac=%s, host_name=%s, ip_address=%s)",
        asset.id,
        descriptor.name,
        asset.mac,
        asset.host_name,
        asset.ip_address,
    )
    return Resolution(asset_id=asset.id, status=ResolutionStatus.CREATED)


def check_creation_race(
    descriptor: SourceDescriptor,
    observation: SourceObservation,
    resolution: Resolution,
    *,
    assets: AssetRepository,
) -> None:
    """Raise ``ResolutionRace`` if an older asset now answers to our keys.

    Resolution found nothing before creating, so any lower-id match that is
    visible now was committed by a concurrent ingestion in between.
    """

    if not resolution.created:
        return
    for key, value in descriptor.match_candidates(observation):
        winner = assets.find_first(key, value)
        if winner is None or winner.id is None:
            continue
        if winner.id < resolution.asset_id:
            raise ResolutionRace(created_id=resolution.asset_id, winner_id=winner.id)


def _new_asset_from(observation: SourceObservation, *, now: datetime) -> CanonicalAsset:
    asset = CanonicalAsset(
        host_name=observation.host_name,
        mac=observation.mac,
        ip_address=observation.ip_address,
        last_seen=observation.observed_at,
    )
    asset.touch(now)
    return asset
