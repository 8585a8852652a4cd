"""Administrative reads and edits of the canonical store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nventory.domain.model import CanonicalAsset

from .errors import AssetNotFoundError, DuplicateSerialNumberError
from .normalization import norm_mac, norm_text
from .sources import parse_source

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from datetime import datetime

    from nventory.domain.model import DataSource, SourceName, SourceObservation
    from nventory.domain.ports.unit_of_work import InventoryUnitOfWork

log = logging.getLogger(__name__)


def get_asset(
    asset_id: int, *, unit_of_work_factory: Callable[[], InventoryUnitOfWork]
) -> CanonicalAsset:
    with unit_of_work_factory() as uow:
        asset = uow.repositories.assets.get(asset_id)
        if asset is None:
            raise AssetNotFoundError(asset_id)
        return asset


def get_asset_observations(
    asset_id: int,
    *,
    unit_of_work_factory: Callable[[], InventoryUnitOfWork],
    source: SourceName | str | None = None,
) -> Sequence[SourceObservation]:
    source_name = parse_source(source) if source is not None else None
    with unit_of_work_factory() as uow:
        return uow.repositories.observations.for_asset(asset_id, source=source_name)


def update_asset(
    asset_id: int,
    changes: Mapping[str, object],
    *,
    unit_of_work_factory: Callable[[], InventoryUnitOfWork],
    now: datetime,
) -> CanonicalAsset:
    """Set administrative fields on an asset; ``None`` clears a field.

    Assigning a serial number held by another asset raises
    ``DuplicateSerialNumberError`` and leaves both assets untouched.
    """

    unknown = sorted(set(changes) - CanonicalAsset.EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Not editable: {', '.join(unknown)}")
    values = {name: _normalize_edit(name, value) for name, value in changes.items()}

    with unit_of_work_factory() as uow:
        assets = uow.repositories.assets
        asset = assets.get(asset_id)
        if asset is None:
            raise AssetNotFoundError(asset_id)

        serial = values.get("serial_number")
        if isinstance(serial, str) and serial != asset.serial_number:
            holder = assets.get_by_serial(serial)
            if holder is not None and holder.id != asset_id:
                raise DuplicateSerialNumberError(serial, holder_id=holder.id)

        for name, value in values.items():
            setattr(asset, name, value)
        asset.touch(now)
        # a concurrent writer can still claim the serial; flush maps that too
        assets.flush()
        uow.commit()
        log.info("Updated asset %s: %s", asset_id, ", ".join(sorted(values)))
        return asset


def delete_asset(
    asset_id: int, *, unit_of_work_factory: Callable[[], InventoryUnitOfWork]
) -> None:
    """Remove an asset; ledger rows stay and lose their reference."""

    with unit_of_work_factory() as uow:
        assets = uow.repositories.assets
        asset = assets.get(asset_id)
        if asset is None:
            raise AssetNotFoundError(asset_id)
        assets.remove(asset)
        uow.commit()
        log.info("Deleted asset %s", asset_id)


def get_source_freshness(
    source: SourceName | str, *, unit_of_work_factory: Callable[[], InventoryUnitOfWork]
) -> datetime | None:
    name = parse_source(source)
    with unit_of_work_factory() as uow:
        entry = uow.repositories.sources.get(name)
        return entry.last_update if entry is not None else None


def list_sources(
    *, unit_of_work_factory: Callable[[], InventoryUnitOfWork]
) -> Sequence[DataSource]:
    with unit_of_work_factory() as uow:
        return tuple(uow.repositories.sources.list())


def _normalize_edit(name: str, value: object) -> object:
    if name == "mac":
        return norm_mac(value)
    return norm_text(value)
