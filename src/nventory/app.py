"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from nventory.adapters.locking import ThreadIdentityLocks
from nventory.adapters.records import parse_record
from nventory.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from nventory.config import get_ingest_config
from nventory.domain import ingestion, maintenance
from nventory.domain.comparison import ComparisonView
from nventory.domain.errors import InventoryError
from nventory.domain.ingestion import IngestBatchResult, utcnow
from nventory.domain.ports.unit_of_work import InventoryUnitOfWork
from nventory.domain.sources import descriptor_for

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from datetime import datetime
    from pathlib import Path

    from nventory.config import IngestConfig
    from nventory.domain.ingestion import Clock, ObservationInput
    from nventory.domain.model import CanonicalAsset, DataSource, SourceName, SourceObservation
    from nventory.domain.ports.locking import IdentityLocks

UnitOfWorkFactory = Callable[[], InventoryUnitOfWork]

log = getLogger(__name__)

# Shared by every ingestion in this process.
_IDENTITY_LOCKS = ThreadIdentityLocks()


def _resolve_factory(unit_of_work_factory: UnitOfWorkFactory | None) -> UnitOfWorkFactory:
    if unit_of_work_factory is not None:
        return unit_of_work_factory
    if not is_started():
        startup()
    return SqlAlchemyUnitOfWork


def ingest_observation(
    source: SourceName | str,
    fields: Mapping[str, object],
    observed_at: datetime | str,
    *,
    canonical_asset_id: int | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    identity_locks: IdentityLocks | None = None,
    config: IngestConfig | None = None,
    clock: Clock = utcnow,
) -> int:
    """Ingest one observation and return the id of the asset it was attributed to."""

    effective_config = config or get_ingest_config()
    return ingestion.ingest_observation(
        source,
        fields,
        observed_at,
        canonical_asset_id=canonical_asset_id,
        unit_of_work_factory=_resolve_factory(unit_of_work_factory),
        identity_locks=identity_locks or _IDENTITY_LOCKS,
        clock=clock,
        max_attempts=effective_config.max_resolution_attempts,
        lock_timeout=effective_config.lock_timeout_seconds,
    )


def ingest_records(
    records: Iterable[ObservationInput],
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    identity_locks: IdentityLocks | None = None,
    config: IngestConfig | None = None,
    clock: Clock = utcnow,
) -> IngestBatchResult:
    effective_config = config or get_ingest_config()
    return ingestion.ingest_batch(
        records,
        unit_of_work_factory=_resolve_factory(unit_of_work_factory),
        identity_locks=identity_locks or _IDENTITY_LOCKS,
        clock=clock,
        max_attempts=effective_config.max_resolution_attempts,
        lock_timeout=effective_config.lock_timeout_seconds,
    )


def import_records(
    path: Path,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    identity_locks: IdentityLocks | None = None,
    config: IngestConfig | None = None,
    clock: Clock = utcnow,
) -> IngestBatchResult:
    """Ingest a JSON-lines collector export.

    Every line is its own unit of work. Rejected lines are reported by line
    number in the result and do not stop the import.
    """

    effective_factory = _resolve_factory(unit_of_work_factory)
    effective_locks = identity_locks or _IDENTITY_LOCKS
    effective_config = config or get_ingest_config()
    result = IngestBatchResult()

    log.info("Importing collector records from %s", path)
    with path.open(encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                record = parse_record(line)
                asset_id = ingestion.ingest_observation(
                    record.source,
                    record.fields,
                    record.observed_at,
                    canonical_asset_id=record.canonical_asset_id,
                    unit_of_work_factory=effective_factory,
                    identity_locks=effective_locks,
                    clock=clock,
                    max_attempts=effective_config.max_resolution_attempts,
                    lock_timeout=effective_config.lock_timeout_seconds,
                )
            except InventoryError as exc:
                log.warning("%s:%s rejected: %s", path.name, line_number, exc)
                result.failed += 1
                result.errors.append((line_number, exc))
                continue
            result.ingested += 1
            result.asset_ids.append(asset_id)

    log.info(
        "Finished import of %s: ingested=%s, failed=%s", path, result.ingested, result.failed
    )
    return result


def get_asset(
    asset_id: int, *, unit_of_work_factory: UnitOfWorkFactory | None = None
) -> CanonicalAsset:
    return maintenance.get_asset(
        asset_id, unit_of_work_factory=_resolve_factory(unit_of_work_factory)
    )


def get_asset_observations(
    asset_id: int,
    *,
    source: SourceName | str | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Sequence[SourceObservation]:
    return maintenance.get_asset_observations(
        asset_id,
        source=source,
        unit_of_work_factory=_resolve_factory(unit_of_work_factory),
    )


def update_asset(
    asset_id: int,
    changes: Mapping[str, object],
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    clock: Clock = utcnow,
) -> CanonicalAsset:
    return maintenance.update_asset(
        asset_id,
        changes,
        unit_of_work_factory=_resolve_factory(unit_of_work_factory),
        now=clock(),
    )


def delete_asset(asset_id: int, *, unit_of_work_factory: UnitOfWorkFactory | None = None) -> None:
    maintenance.delete_asset(asset_id, unit_of_work_factory=_resolve_factory(unit_of_work_factory))


def list_comparison(
    source: SourceName | str,
    *,
    latest_only: bool = False,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ComparisonView:
    """Canonical assets side by side with what ``source`` reported about them."""

    return ComparisonView(
        descriptor_for(source),
        unit_of_work_factory=_resolve_factory(unit_of_work_factory),
        latest_only=latest_only,
    )


def get_source_freshness(
    source: SourceName | str, *, unit_of_work_factory: UnitOfWorkFactory | None = None
) -> datetime | None:
    return maintenance.get_source_freshness(
        source, unit_of_work_factory=_resolve_factory(unit_of_work_factory)
    )


def list_sources(*, unit_of_work_factory: UnitOfWorkFactory | None = None) -> Sequence[DataSource]:
    return maintenance.list_sources(unit_of_work_factory=_resolve_factory(unit_of_work_factory))
