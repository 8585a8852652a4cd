"""Ingestion entry point: resolve, record, merge and bump freshness as one unit."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .errors import InventoryError, ResolutionRace
from .merge import merge_observation
from .resolution import check_creation_race, resolve_asset
from .sources import descriptor_for

if TYPE_CHECKING:
    from collections.abc import Iterable

    from nventory.domain.model import SourceName, SourceObservation
    from nventory.domain.ports.locking import IdentityLocks
    from nventory.domain.ports.unit_of_work import InventoryUnitOfWork
    from nventory.domain.sources import SourceDescriptor

log = logging.getLogger(__name__)

DEFAULT_MAX_RESOLUTION_ATTEMPTS = 3

type Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class ObservationInput:
    """One already-parsed collector record awaiting ingestion."""

    source: SourceName | str
    fields: Mapping[str, object]
    observed_at: datetime | str
    canonical_asset_id: int | None = None


@dataclass(slots=True)
class IngestBatchResult:
    ingested: int = 0
    failed: int = 0
    asset_ids: list[int] = field(default_factory=list[int])
    errors: list[tuple[int, InventoryError]] = field(
        default_factory=list[tuple[int, InventoryError]]
    )


def ingest_observation(
    source: SourceName | str,
    fields: Mapping[str, object],
    observed_at: datetime | str,
    *,
    unit_of_work_factory: Callable[[], InventoryUnitOfWork],
    identity_locks: IdentityLocks,
    canonical_asset_id: int | None = None,
    clock: Clock = utcnow,
    max_attempts: int = DEFAULT_MAX_RESOLUTION_ATTEMPTS,
    lock_timeout: float | None = None,
) -> int:
    """Ingest one observation and return the canonical asset id it landed on.

    The source and payload are validated before anything is written. The
    identity locks are held from resolution until commit, so two first
    sightings of one device serialise and the second merges into the asset
    the first created. Once resolved, the asset itself is locked until commit,
    so observations that reach it through different keys merge one at a time.
    Everything happens in a single unit of work: on any error nothing is persisted.
    """

    descriptor = descriptor_for(source)
    # validate once up front; every attempt below rebuilds a fresh instance
    candidate = descriptor.build_observation(
        fields, observed_at=observed_at, canonical_asset_id=canonical_asset_id
    )
    keys = descriptor.identity_keys(candidate)

    attempt = 0
    while True:
        attempt += 1
        with ExitStack() as held:
            held.enter_context(identity_locks.hold(keys, timeout=lock_timeout))
            uow = held.enter_context(unit_of_work_factory())
            uow.lock_identities(keys)
            now = clock()
            observation = descriptor.build_observation(
                fields,
                observed_at=observed_at,
                recorded_at=now,
                canonical_asset_id=canonical_asset_id,
            )
            try:
                asset_id = _resolve(uow, descriptor, observation, now=now)
            except ResolutionRace as race:
                uow.rollback()
                if attempt >= max_attempts:
                    log.error(
                        "%s observation still racing after %s attempts", descriptor.name, attempt
                    )
                    raise
                log.warning(
                    "%s observation lost creation race to asset %s; re-resolving (attempt %s)",
                    descriptor.name,
                    race.winner_id,
                    attempt,
                )
                continue
            # Observations reaching one asset through disjoint keys meet here.
            held.enter_context(
                identity_locks.hold([asset_lock_key(asset_id)], timeout=lock_timeout)
            )
            _record(uow, descriptor, observation, asset_id, now=now)
            uow.commit()
            return asset_id


def ingest_batch(
    records: Iterable[ObservationInput],
    *,
    unit_of_work_factory: Callable[[], InventoryUnitOfWork],
    identity_locks: IdentityLocks,
    clock: Clock = utcnow,
    max_attempts: int = DEFAULT_MAX_RESOLUTION_ATTEMPTS,
    lock_timeout: float | None = None,
) -> IngestBatchResult:
    """Ingest records one by one; structured failures are collected, not raised.

    Each record is its own unit of work, so one bad record never rolls back
    the others. Storage errors still propagate.
    """

    result = IngestBatchResult()
    for index, record in enumerate(records):
        try:
            asset_id = ingest_observation(
                record.source,
                record.fields,
                record.observed_at,
                canonical_asset_id=record.canonical_asset_id,
                unit_of_work_factory=unit_of_work_factory,
                identity_locks=identity_locks,
                clock=clock,
                max_attempts=max_attempts,
                lock_timeout=lock_timeout,
            )
        except InventoryError as exc:
            log.warning("Record %s rejected: %s", index, exc)
            result.failed += 1
            result.errors.append((index, exc))
            continue
        result.ingested += 1
        result.asset_ids.append(asset_id)
    log.info("Batch finished: ingested=%s, failed=%s", result.ingested, result.failed)
    return result


def asset_lock_key(asset_id: int) -> tuple[str, int]:
    """Identity-lock key held by every writer of one canonical asset."""

    return ("asset", asset_id)


def _resolve(
    uow: InventoryUnitOfWork,
    descriptor: SourceDescriptor,
    observation: SourceObservation,
    *,
    now: datetime,
) -> int:
    assets = uow.repositories.assets
    resolution = resolve_asset(descriptor, observation, assets=assets, now=now)
    check_creation_race(descriptor, observation, resolution, assets=assets)
    return resolution.asset_id


def _record(
    uow: InventoryUnitOfWork,
    descriptor: SourceDescriptor,
    observation: SourceObservation,
    asset_id: int,
    *,
    now: datetime,
) -> None:
    repositories = uow.repositories
    # The merge confirms the target exists before the ledger row references it.
    merge_observation(
        asset_id,
        observation,
        descriptor,
        assets=repositories.assets,
        sources=repositories.sources,
        now=now,
    )
    observation.canonical_asset_id = asset_id
    repositories.observations.add(observation)
