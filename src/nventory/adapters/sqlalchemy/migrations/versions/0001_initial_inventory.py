"""initial inventory schema

Revision ID: 0001_initial_inventory
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001_initial_inventory"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_SOURCES = (
    ("Forescout", "Data collected from Forescout platform"),
    ("ActiveDirectory", "Data collected from Active Directory"),
    ("SecurityCenter", "Data collected from Security Center"),
    ("HBSS", "Data collected from Host-Based Security System"),
)


def upgrade() -> None:
    op.create_table(
        "canonical_asset",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("serial_number", sa.String(length=100), nullable=True),
        sa.Column("host_name", sa.String(length=255), nullable=True),
        sa.Column("mac", sa.String(length=50), nullable=True),
        sa.Column("ip_address", sa.String(length=50), nullable=True),
        sa.Column("make", sa.String(length=100), nullable=True),
        sa.Column("model", sa.String(length=100), nullable=True),
        sa.Column("department", sa.String(length=100), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_canonical_asset")),
        sa.UniqueConstraint("serial_number", name=op.f("uq_canonical_asset_serial_number")),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_canonical_asset_mac", "canonical_asset", ["mac"])
    op.create_index("ix_canonical_asset_host_name", "canonical_asset", ["host_name"])
    op.create_index("ix_canonical_asset_ip_address", "canonical_asset", ["ip_address"])

    op.create_table(
        "source_observation",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("source", sa.String(length=32), nullable=False),
        sa.Column("canonical_asset_id", sa.Integer(), nullable=True),
        sa.Column("host_name", sa.String(length=255), nullable=True),
        sa.Column("mac", sa.String(length=50), nullable=True),
        sa.Column("ip_address", sa.String(length=50), nullable=True),
        sa.Column("department", sa.String(length=100), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=True),
        sa.Column("vulnerabilities_count", sa.Integer(), nullable=True),
        sa.Column("observed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["canonical_asset_id"],
            ["canonical_asset.id"],
            name=op.f("fk_source_observation_canonical_asset_id_canonical_asset"),
            ondelete="SET NULL",
            onupdate="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_source_observation")),
    )
    op.create_index(
        "ix_source_observation_source_mac", "source_observation", ["source", "mac"]
    )
    op.create_index(
        "ix_source_observation_source_host_name", "source_observation", ["source", "host_name"]
    )
    op.create_index(
        "ix_source_observation_source_ip_address",
        "source_observation",
        ["source", "ip_address"],
    )
    op.create_index(
        "ix_source_observation_canonical_asset_id", "source_observation", ["canonical_asset_id"]
    )

    data_source = op.create_table(
        "data_source",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=32), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("last_update", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_data_source")),
        sa.UniqueConstraint("name", name=op.f("uq_data_source_name")),
    )
    op.bulk_insert(
        data_source,
        [{"name": name, "description": description} for name, description in _SOURCES],
    )


def downgrade() -> None:
    op.drop_table("data_source")
    op.drop_index("ix_source_observation_canonical_asset_id", table_name="source_observation")
    op.drop_index("ix_source_observation_source_ip_address", table_name="source_observation")
    op.drop_index("ix_source_observation_source_host_name", table_name="source_observation")
    op.drop_index("ix_source_observation_source_mac", table_name="source_observation")
    op.drop_table("source_observation")
    op.drop_index("ix_canonical_asset_ip_address", table_name="canonical_asset")
    op.drop_index("ix_canonical_asset_host_name", table_name="canonical_asset")
    op.drop_index("ix_canonical_asset_mac", table_name="canonical_asset")
    op.drop_table("canonical_asset")
