"""SQLAlchemy mapping metadata for the inventory domain model."""

from __future__ import annotations

import logging
import sqlite3
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    event,
    orm,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import configure_mappers

from nventory.domain.model import CanonicalAsset, DataSource, SourceName, SourceObservation

if TYPE_CHECKING:
    from sqlalchemy.pool import ConnectionPoolEntry

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def _source_values(enum_cls: type[SourceName]) -> list[str]:
    return [member.value for member in enum_cls]


SourceNameType = Enum(
    SourceName,
    native_enum=False,
    length=32,
    values_callable=_source_values,
    validate_strings=True,
)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(
    dbapi_connection: Any,  # noqa: ANN401
    _record: ConnectionPoolEntry,
) -> None:
    """SQLite ignores ``ON DELETE SET NULL`` unless foreign keys are switched on."""

    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

canonical_asset_table = Table(
    "canonical_asset",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("serial_number", String(100), nullable=True),
    Column("host_name", String(255), nullable=True),
    Column("mac", String(50), nullable=True),
    Column("ip_address", String(50), nullable=True),
    Column("make", String(100), nullable=True),
    Column("model", String(100), nullable=True),
    Column("department", String(100), nullable=True),
    Column("status", String(50), nullable=True),
    Column("notes", Text, nullable=True),
    Column("location", String(255), nullable=True),
    Column("last_seen", UTCDateTime, nullable=True),
    Column("created_at", UTCDateTime, nullable=False),
    Column("updated_at", UTCDateTime, nullable=False),
    UniqueConstraint("serial_number", name="uq_canonical_asset_serial_number"),
    Index("ix_canonical_asset_mac", "mac"),
    Index("ix_canonical_asset_host_name", "host_name"),
    Index("ix_canonical_asset_ip_address", "ip_address"),
    sqlite_autoincrement=True,
)

source_observation_table = Table(
    "source_observation",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("source", SourceNameType, nullable=False),
    Column(
        "canonical_asset_id",
        Integer,
        ForeignKey("canonical_asset.id", ondelete="SET NULL", onupdate="CASCADE"),
        nullable=True,
    ),
    Column("host_name", String(255), nullable=True),
    Column("mac", String(50), nullable=True),
    Column("ip_address", String(50), nullable=True),
    Column("department", String(100), nullable=True),
    Column("status", String(50), nullable=True),
    Column("vulnerabilities_count", Integer, nullable=True),
    Column("observed_at", UTCDateTime, nullable=False),
    Column("recorded_at", UTCDateTime, nullable=False),
    Index("ix_source_observation_source_mac", "source", "mac"),
    Index("ix_source_observation_source_host_name", "source", "host_name"),
    Index("ix_source_observation_source_ip_address", "source", "ip_address"),
    Index("ix_source_observation_canonical_asset_id", "canonical_asset_id"),
)

data_source_table = Table(
    "data_source",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", SourceNameType, nullable=False),
    Column("description", Text, nullable=True),
    Column("last_update", UTCDateTime, nullable=True),
    UniqueConstraint("name", name="uq_data_source_name"),
)


@cache
def start_mappers() -> orm.registry:
    """Map the domain dataclasses onto their tables (idempotent)."""

    log.debug("Starting mappers")
    mapper_registry.map_imperatively(CanonicalAsset, canonical_asset_table)
    mapper_registry.map_imperatively(SourceObservation, source_observation_table)
    mapper_registry.map_imperatively(DataSource, data_source_table)
    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
