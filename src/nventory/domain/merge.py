"""Fold observations into canonical assets.

Last non-null write wins per field: a value the observation does not carry
never clears what is already on the asset. ``last_seen`` follows the newest
observation regardless of arrival order; ``updated_at`` always moves to the
merge time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .errors import StaleAssetReferenceError

if TYPE_CHECKING:
    from datetime import datetime

    from nventory.domain.model import CanonicalAsset, SourceObservation
    from nventory.domain.ports.persistence import AssetRepository, SourceRegistry
    from nventory.domain.sources import SourceDescriptor

log = logging.getLogger(__name__)


@dataclass(slots=True)
class MergeOutcome:
    asset: CanonicalAsset
    changed_fields: list[str] = field(default_factory=list[str])
    last_seen_advanced: bool = False


def merge_observation(
    asset_id: int,
    observation: SourceObservation,
    descriptor: SourceDescriptor,
    *,
    assets: AssetRepository,
    sources: SourceRegistry,
    now: datetime,
) -> MergeOutcome:
    """Apply ``observation`` to asset ``asset_id`` and bump source freshness.

    Raises ``StaleAssetReferenceError`` without touching anything if the asset
    is gone; callers re-resolve instead of retrying the merge.
    """

    asset = assets.get(asset_id, for_update=True)
    if asset is None:
        log.warning("%s merge target %s vanished", descriptor.name, asset_id)
        raise StaleAssetReferenceError(asset_id)

    outcome = MergeOutcome(asset=asset)
    for name in descriptor.merged_fields:
        if asset.coalesce(name, getattr(observation, name)):
            outcome.changed_fields.append(name)
    outcome.last_seen_advanced = asset.observe(observation.observed_at)
    asset.touch(now)

    _bump_freshness(descriptor, sources=sources, now=now)
    log.debug(
        "Merged %s observation into asset %s: changed=%s, last_seen_advanced=%s",
        descriptor.name,
        asset_id,
        outcome.changed_fields,
        outcome.last_seen_advanced,
    )
    return outcome


def _bump_freshness(
    descriptor: SourceDescriptor,
    *,
    sources: SourceRegistry,
    now: datetime,
) -> None:
    entry = sources.get(descriptor.name)
    if entry is None:
        # Registry rows are provisioned by the schema migration.
        raise LookupError(f"Source registry has no entry for {descriptor.name}")
    entry.mark_updated(now)
