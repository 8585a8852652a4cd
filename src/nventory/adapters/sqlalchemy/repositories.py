"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError

from nventory.adapters.sqlalchemy.mappings import (
    canonical_asset_table,
    data_source_table,
    source_observation_table,
)
from nventory.domain.comparison import build_comparison_row
from nventory.domain.errors import DuplicateSerialNumberError
from nventory.domain.model import CanonicalAsset, DataSource, MatchField, SourceObservation

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from sqlalchemy import ColumnElement, FromClause, Select
    from sqlalchemy.orm import Session

    from nventory.domain.comparison import ComparisonRow
    from nventory.domain.model import SourceName
    from nventory.domain.sources import SourceDescriptor

COMPARISON_YIELD_PER = 500

_ASSET_COLUMNS = {
    MatchField.MAC: canonical_asset_table.c.mac,
    MatchField.HOST_NAME: canonical_asset_table.c.host_name,
    MatchField.IP_ADDRESS: canonical_asset_table.c.ip_address,
}


class SqlAlchemyAssetRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: CanonicalAsset) -> None:
        self.session.add(entity)
        self.flush()

    def get(self, asset_id: int, *, for_update: bool = False) -> CanonicalAsset | None:
        if for_update:
            return self.session.get(
                CanonicalAsset, asset_id, with_for_update=True, populate_existing=True
            )
        return self.session.get(CanonicalAsset, asset_id)

    def find_first(self, field: MatchField, value: str) -> CanonicalAsset | None:
        column = _ASSET_COLUMNS[field]
        stmt = (
            select(CanonicalAsset)
            .where(column.is_not(None))
            .where(column == value)
            .order_by(canonical_asset_table.c.id)
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def get_by_serial(self, serial_number: str) -> CanonicalAsset | None:
        stmt = select(CanonicalAsset).where(canonical_asset_table.c.serial_number == serial_number)
        return self.session.execute(stmt).scalar_one_or_none()

    def remove(self, asset: CanonicalAsset) -> None:
        self.session.delete(asset)

    def flush(self) -> None:
        try:
            self.session.flush()
        except IntegrityError as exc:
            serial = _serial_collision(exc, self.session)
            if serial is None:
                raise
            raise DuplicateSerialNumberError(serial) from exc


class SqlAlchemyObservationRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: SourceObservation) -> None:
        self.session.add(entity)

    def for_asset(
        self, asset_id: int, *, source: SourceName | None = None
    ) -> Sequence[SourceObservation]:
        stmt = select(SourceObservation).where(
            source_observation_table.c.canonical_asset_id == asset_id
        )
        if source is not None:
            stmt = stmt.where(source_observation_table.c.source == source)
        stmt = stmt.order_by(
            source_observation_table.c.observed_at, source_observation_table.c.id
        )
        return tuple(self.session.execute(stmt).scalars())


class SqlAlchemySourceRegistry:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, name: SourceName) -> DataSource | None:
        stmt = select(DataSource).where(data_source_table.c.name == name)
        return self.session.execute(stmt).scalar_one_or_none()

    def list(self) -> Sequence[DataSource]:
        stmt = select(DataSource).order_by(data_source_table.c.id)
        return tuple(self.session.execute(stmt).scalars())


class SqlAlchemyComparisonQuery:
    """Left-join every canonical asset to one source's ledger rows."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def iter_rows(
        self, descriptor: SourceDescriptor, *, latest_only: bool = False
    ) -> Iterator[ComparisonRow]:
        stmt = self._statement(descriptor, latest_only=latest_only)
        result = self.session.execute(stmt.execution_options(yield_per=COMPARISON_YIELD_PER))
        asset_keys = ("id", "serial_number", *descriptor.canonical_columns)
        observation_keys = ("id", *descriptor.reported_columns)
        for row in result:
            values = row._mapping  # noqa: SLF001
            yield build_comparison_row(
                descriptor,
                asset_values={key: values[f"asset_{key}"] for key in asset_keys},
                observation_values={key: values[f"obs_{key}"] for key in observation_keys},
            )

    def _statement(self, descriptor: SourceDescriptor, *, latest_only: bool) -> Select[Any]:
        asset = canonical_asset_table
        observed = source_observation_table.alias("observed")
        join_on = and_(
            observed.c.canonical_asset_id == asset.c.id,
            observed.c.source == descriptor.name,
        )
        if latest_only:
            newer = source_observation_table.alias("newer")
            newer_exists = (
                select(newer.c.id)
                .where(newer.c.canonical_asset_id == observed.c.canonical_asset_id)
                .where(newer.c.source == observed.c.source)
                .where(
                    or_(
                        newer.c.observed_at > observed.c.observed_at,
                        and_(
                            newer.c.observed_at == observed.c.observed_at,
                            newer.c.id > observed.c.id,
                        ),
                    )
                )
                .correlate(observed)
                .exists()
            )
            join_on = and_(join_on, ~newer_exists)

        columns = [
            asset.c.id.label("asset_id"),
            asset.c.serial_number.label("asset_serial_number"),
            *(_asset_column(name).label(f"asset_{name}") for name in descriptor.canonical_columns),
            observed.c.id.label("obs_id"),
            *(
                _observation_column(observed, name).label(f"obs_{name}")
                for name in descriptor.reported_columns
            ),
        ]
        return (
            select(*columns)
            .select_from(asset.outerjoin(observed, join_on))
            .order_by(asset.c.id, observed.c.observed_at, observed.c.id)
        )


def _asset_column(name: str) -> ColumnElement[Any]:
    return canonical_asset_table.c[name]


def _observation_column(observed: FromClause, name: str) -> ColumnElement[Any]:
    if name == "last_seen":
        return observed.c.observed_at
    return observed.c[name]


def _serial_collision(exc: IntegrityError, session: Session) -> str | None:
    message = str(exc.orig).lower()
    if "serial_number" not in message:
        return None
    params = exc.params
    if isinstance(params, dict):
        serial = cast("dict[str, object]", params).get("serial_number")
        if isinstance(serial, str):
            return serial
    for pending in (*session.dirty, *session.new):
        if isinstance(pending, CanonicalAsset) and pending.serial_number is not None:
            return pending.serial_number
    return "<unknown>"


if TYPE_CHECKING:
    from nventory.domain.ports.persistence import (
        AssetRepository,
        ComparisonQuery,
        ObservationRepository,
        SourceRegistry,
    )

    _session_stub = cast("Session", object())
    _asset_repo: AssetRepository = SqlAlchemyAssetRepository(_session_stub)
    _observation_repo: ObservationRepository = SqlAlchemyObservationRepository(_session_stub)
    _source_registry: SourceRegistry = SqlAlchemySourceRegistry(_session_stub)
    _comparison_query: ComparisonQuery = SqlAlchemyComparisonQuery(_session_stub)
