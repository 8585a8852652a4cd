from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import UniqueConstraint, inspect, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.schema import CreateTable

from nventory.adapters.sqlalchemy import create_all_tables, start_mappers
from nventory.adapters.sqlalchemy.mappings import (
    canonical_asset_table,
    data_source_table,
    source_observation_table,
)
from nventory.domain.model import CanonicalAsset, SourceName, SourceObservation

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine
    from sqlalchemy.orm import Session

T0 = datetime(2024, 5, 1, 10, 0, tzinfo=UTC)


def _asset(**values: object) -> CanonicalAsset:
    asset = CanonicalAsset(**values)  # pyright: ignore[reportArgumentType]
    asset.touch(T0)
    return asset


def test_start_mappers_is_idempotent() -> None:
    start_mappers()
    start_mappers()


def test_migrations_create_schema_and_seed_sources(sqlite_engine: Engine) -> None:
    inspector = inspect(sqlite_engine)

    assert {"canonical_asset", "source_observation", "data_source"} <= set(
        inspector.get_table_names()
    )
    asset_indexes = {index["name"] for index in inspector.get_indexes("canonical_asset")}
    assert {"ix_canonical_asset_mac", "ix_canonical_asset_host_name"} <= asset_indexes
    with sqlite_engine.connect() as connection:
        names = connection.execute(select(data_source_table.c.name)).scalars().all()
    assert sorted(names) == sorted(SourceName)


def test_mapped_constraint_names_match_the_migrated_schema(sqlite_engine: Engine) -> None:
    inspector = inspect(sqlite_engine)

    for table in (canonical_asset_table, data_source_table):
        mapped = {
            constraint.name
            for constraint in table.constraints
            if isinstance(constraint, UniqueConstraint)
        }
        migrated = {entry["name"] for entry in inspector.get_unique_constraints(table.name)}
        assert mapped == migrated
    migrated_fks = {entry["name"] for entry in inspector.get_foreign_keys("source_observation")}
    assert migrated_fks == {"fk_source_observation_canonical_asset_id_canonical_asset"}
    mapped_ddl = str(CreateTable(source_observation_table).compile(dialect=sqlite_engine.dialect))
    assert "CONSTRAINT fk_source_observation_canonical_asset_id_canonical_asset" in mapped_ddl


def test_create_all_tables_is_harmless_after_migrations(sqlite_engine: Engine) -> None:
    create_all_tables(sqlite_engine)


def test_source_names_are_stored_by_value(sqlite_session: Session) -> None:
    sqlite_session.add(
        SourceObservation(source=SourceName.ACTIVE_DIRECTORY, observed_at=T0, recorded_at=T0)
    )
    sqlite_session.commit()

    raw = sqlite_session.execute(text("SELECT source FROM source_observation")).scalar_one()

    assert raw == "ActiveDirectory"


def test_timestamps_round_trip_as_aware_utc(sqlite_session: Session) -> None:
    asset = _asset(mac="AA:BB", last_seen=datetime(2024, 5, 1, 12, 0))
    sqlite_session.add(asset)
    sqlite_session.commit()
    sqlite_session.expire_all()

    loaded = sqlite_session.get(CanonicalAsset, asset.id)

    assert loaded is not None
    assert loaded.last_seen == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    assert loaded.created_at == T0


def test_serial_number_is_unique(sqlite_session: Session) -> None:
    sqlite_session.add(_asset(serial_number="SN1"))
    sqlite_session.commit()
    sqlite_session.add(_asset(serial_number="SN1"))

    with pytest.raises(IntegrityError):
        sqlite_session.commit()
    sqlite_session.rollback()


def test_deleting_an_asset_clears_ledger_references(sqlite_session: Session) -> None:
    asset = _asset(mac="AA:BB")
    sqlite_session.add(asset)
    sqlite_session.flush()
    observation = SourceObservation(
        source=SourceName.HBSS,
        mac="AA:BB",
        observed_at=T0,
        recorded_at=T0,
        canonical_asset_id=asset.id,
    )
    sqlite_session.add(observation)
    sqlite_session.commit()

    sqlite_session.delete(asset)
    sqlite_session.commit()
    sqlite_session.expire_all()

    reloaded = sqlite_session.get(SourceObservation, observation.id)
    assert reloaded is not None
    assert reloaded.canonical_asset_id is None
