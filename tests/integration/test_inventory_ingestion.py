from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import pytest

from nventory import app
from nventory.adapters.locking import ThreadIdentityLocks
from nventory.config import IngestConfig
from nventory.domain.errors import (
    DuplicateSerialNumberError,
    StaleAssetReferenceError,
    UnknownSourceError,
)
from nventory.domain.ingestion import ObservationInput
from nventory.domain.model import SourceName
from tests.helpers.inventory import FakeClock

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from nventory.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork

T1 = datetime(2024, 5, 1, 10, 0, tzinfo=UTC)
T2 = T1 + timedelta(hours=1)
CONFIG = IngestConfig(max_resolution_attempts=3, lock_timeout_seconds=5.0)


@pytest.mark.integration
def test_hbss_then_forescout_against_sqlite(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    clock = FakeClock(start=T2 + timedelta(days=1))
    asset_id = app.ingest_observation(
        "HBSS",
        {"mac": "AA:BB", "host_name": "H1", "status": "active"},
        T1,
        unit_of_work_factory=sqlite_unit_of_work,
        config=CONFIG,
        clock=clock,
    )

    same = app.ingest_observation(
        SourceName.FORESCOUT,
        {"mac": "AA:BB", "ip_address": "10.0.0.5"},
        T2,
        unit_of_work_factory=sqlite_unit_of_work,
        config=CONFIG,
        clock=clock,
    )

    assert same == asset_id
    asset = app.get_asset(asset_id, unit_of_work_factory=sqlite_unit_of_work)
    assert asset.mac == "AA:BB"
    assert asset.host_name == "H1"
    assert asset.ip_address == "10.0.0.5"
    assert asset.status == "active"
    assert asset.last_seen == T2
    observations = app.get_asset_observations(asset_id, unit_of_work_factory=sqlite_unit_of_work)
    assert [obs.source for obs in observations] == [SourceName.HBSS, SourceName.FORESCOUT]
    assert app.get_source_freshness("HBSS", unit_of_work_factory=sqlite_unit_of_work) is not None
    assert (
        app.get_source_freshness("ActiveDirectory", unit_of_work_factory=sqlite_unit_of_work)
        is None
    )


@pytest.mark.integration
def test_failed_ingestion_leaves_no_trace(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    with pytest.raises(StaleAssetReferenceError):
        app.ingest_observation(
            "HBSS",
            {"mac": "AA:BB"},
            T1,
            canonical_asset_id=404,
            unit_of_work_factory=sqlite_unit_of_work,
            config=CONFIG,
        )

    rows = list(app.list_comparison("HBSS", unit_of_work_factory=sqlite_unit_of_work))
    assert rows == []
    assert app.get_source_freshness("HBSS", unit_of_work_factory=sqlite_unit_of_work) is None


@pytest.mark.integration
def test_serial_uniqueness_through_the_store(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    first = app.ingest_observation(
        "HBSS", {"mac": "AA:BB"}, T1, unit_of_work_factory=sqlite_unit_of_work, config=CONFIG
    )
    second = app.ingest_observation(
        "HBSS", {"mac": "CC:DD"}, T1, unit_of_work_factory=sqlite_unit_of_work, config=CONFIG
    )
    app.update_asset(first, {"serial_number": "SN1"}, unit_of_work_factory=sqlite_unit_of_work)

    with pytest.raises(DuplicateSerialNumberError):
        app.update_asset(
            second,
            {"serial_number": "SN1", "location": "Lab"},
            unit_of_work_factory=sqlite_unit_of_work,
        )

    untouched = app.get_asset(second, unit_of_work_factory=sqlite_unit_of_work)
    assert untouched.serial_number is None
    assert untouched.location is None


@pytest.mark.integration
def test_delete_keeps_the_ledger(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    asset_id = app.ingest_observation(
        "SecurityCenter",
        {"mac": "AA:BB", "vulnerabilities_count": 2},
        T1,
        unit_of_work_factory=sqlite_unit_of_work,
        config=CONFIG,
    )

    app.delete_asset(asset_id, unit_of_work_factory=sqlite_unit_of_work)

    assert app.get_asset_observations(asset_id, unit_of_work_factory=sqlite_unit_of_work) == ()
    replacement = app.ingest_observation(
        "SecurityCenter",
        {"mac": "AA:BB"},
        T2,
        unit_of_work_factory=sqlite_unit_of_work,
        config=CONFIG,
    )
    assert replacement != asset_id


@pytest.mark.integration
def test_import_reports_bad_lines_and_keeps_going(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork], tmp_path: Path
) -> None:
    export = tmp_path / "collector.jsonl"
    export.write_text(
        "\n".join(
            [
                '{"source": "ActiveDirectory", "last_seen": "2024-05-01T10:00:00Z",'
                ' "hostname": "ws-01", "dept": "Finance"}',
                "",
                '{"source": "Nessus", "last_seen": "2024-05-01T10:00:00Z", "mac": "AA"}',
                '{"source": "Forescout", "last_seen": "2024-05-01T11:00:00Z",'
                ' "host_name": "ws-01", "mac": "aa-bb"}',
                "{broken",
            ]
        ),
        encoding="utf-8",
    )

    result = app.import_records(export, unit_of_work_factory=sqlite_unit_of_work, config=CONFIG)

    assert result.ingested == 2
    assert result.failed == 2
    assert [line for line, _ in result.errors] == [3, 5]
    assert result.asset_ids[0] == result.asset_ids[1]
    asset = app.get_asset(result.asset_ids[0], unit_of_work_factory=sqlite_unit_of_work)
    assert (asset.host_name, asset.mac, asset.department) == ("ws-01", "AA:BB", "Finance")


@pytest.mark.integration
def test_comparison_view_against_sqlite(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    locks = ThreadIdentityLocks()
    for source, fields, at in [
        ("ActiveDirectory", {"host_name": "ws-01", "ip_address": "10.0.0.1"}, T1),
        ("ActiveDirectory", {"host_name": "ws-01", "department": "Sales"}, T2),
        ("HBSS", {"mac": "CC:DD"}, T1),
    ]:
        app.ingest_observation(
            source,
            fields,
            at,
            unit_of_work_factory=sqlite_unit_of_work,
            identity_locks=locks,
            config=CONFIG,
        )

    view = app.list_comparison(
        "ActiveDirectory", latest_only=True, unit_of_work_factory=sqlite_unit_of_work
    )
    rows = list(view)

    assert len(rows) == 2
    observed, unobserved = rows
    assert observed.reported["department"] == "Sales"
    assert observed.reported["ip_address"] is None
    assert observed.canonical["ip_address"] == "10.0.0.1"
    assert not unobserved.observed
    assert list(view.discrepancies()) == []


@pytest.mark.integration
def test_ingest_records_reports_rejected_entries_by_position(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    result = app.ingest_records(
        [
            ObservationInput("Forescout", {"mac": "aa-bb"}, T1),
            ObservationInput("Nmap", {"mac": "AA:BB"}, T1),
            ObservationInput("ActiveDirectory", {"host_name": "H1"}, T2),
        ],
        unit_of_work_factory=sqlite_unit_of_work,
        identity_locks=ThreadIdentityLocks(),
        config=CONFIG,
    )

    assert result.ingested == 2
    assert result.failed == 1
    [(position, error)] = result.errors
    assert position == 1
    assert isinstance(error, UnknownSourceError)
    asset = app.get_asset(result.asset_ids[0], unit_of_work_factory=sqlite_unit_of_work)
    assert asset.mac == "AA:BB"
