"""Canonical-vs-source projections for discrepancy audits."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from nventory.domain.model import SourceName
    from nventory.domain.ports.unit_of_work import InventoryUnitOfWork
    from nventory.domain.sources import SourceDescriptor

COLUMN_LABELS: Final[Mapping[str, str]] = MappingProxyType(
    {
        "host_name": "host",
        "mac": "mac",
        "ip_address": "ip",
        "department": "dept",
        "status": "status",
        "last_seen": "last_seen",
        "vulnerabilities_count": "vulnerabilities_count",
    }
)


@dataclass(frozen=True, slots=True)
class ComparisonRow:
    """One canonical asset next to one of its observations from ``source``.

    ``reported`` is empty (and ``observation_id`` is ``None``) for assets the
    source has never reported.
    """

    source: SourceName
    asset_id: int
    serial_number: str | None
    canonical: Mapping[str, object]
    reported: Mapping[str, object] = field(default_factory=dict[str, object])
    observation_id: int | None = None

    @property
    def observed(self) -> bool:
        return self.observation_id is not None

    def discrepancies(self) -> tuple[str, ...]:
        """Paired fields where both sides carry a value and the values differ."""

        fields: list[str] = []
        for name, canonical_value in self.canonical.items():
            if name == "last_seen" or name not in self.reported:
                continue
            reported_value = self.reported[name]
            if canonical_value is None or reported_value is None:
                continue
            if canonical_value != reported_value:
                fields.append(name)
        return tuple(fields)

    def flat(self, descriptor: SourceDescriptor) -> dict[str, object]:
        """Column layout of the classic ``v_inventory_vs_<source>`` views."""

        row: dict[str, object] = {
            "inventory_id": self.asset_id,
            "serial_number": self.serial_number,
        }
        for name in descriptor.canonical_columns:
            row[f"inventory_{COLUMN_LABELS[name]}"] = self.canonical.get(name)
        for name in descriptor.reported_columns:
            row[f"{descriptor.view_prefix}_{COLUMN_LABELS[name]}"] = self.reported.get(name)
        return row


def comparison_columns(descriptor: SourceDescriptor) -> list[str]:
    """Header of :meth:`ComparisonRow.flat` for ``descriptor``."""

    return [
        "inventory_id",
        "serial_number",
        *(f"inventory_{COLUMN_LABELS[name]}" for name in descriptor.canonical_columns),
        *(
            f"{descriptor.view_prefix}_{COLUMN_LABELS[name]}"
            for name in descriptor.reported_columns
        ),
    ]


def build_comparison_row(
    descriptor: SourceDescriptor,
    *,
    asset_values: Mapping[str, object],
    observation_values: Mapping[str, object] | None,
) -> ComparisonRow:
    """Shape raw store values into a :class:`ComparisonRow`.

    ``asset_values`` needs ``id``, ``serial_number`` and the descriptor's
    canonical columns; ``observation_values`` needs ``id`` and its reported
    columns, with ``last_seen`` holding the observation time.
    """

    canonical = {name: asset_values.get(name) for name in descriptor.canonical_columns}
    reported: dict[str, object] = {}
    observation_id: int | None = None
    if observation_values is not None and observation_values.get("id") is not None:
        reported = {name: observation_values.get(name) for name in descriptor.reported_columns}
        observation_id = int(observation_values["id"])  # pyright: ignore[reportArgumentType]
    return ComparisonRow(
        source=descriptor.name,
        asset_id=int(asset_values["id"]),  # pyright: ignore[reportArgumentType]
        serial_number=asset_values.get("serial_number"),  # pyright: ignore[reportArgumentType]
        canonical=canonical,
        reported=reported,
        observation_id=observation_id,
    )


class ComparisonView(Iterable[ComparisonRow]):
    """Lazy, restartable comparison sequence.

    Each iteration opens its own unit of work and streams the current store
    contents; there is no snapshot shared across iterations.
    """

    def __init__(
        self,
        descriptor: SourceDescriptor,
        *,
        unit_of_work_factory: Callable[[], InventoryUnitOfWork],
        latest_only: bool = False,
    ) -> None:
        self.descriptor = descriptor
        self.latest_only = latest_only
        self._unit_of_work_factory = unit_of_work_factory

    def __iter__(self) -> Iterator[ComparisonRow]:
        with self._unit_of_work_factory() as uow:
            yield from uow.repositories.comparisons.iter_rows(
                self.descriptor, latest_only=self.latest_only
            )

    def discrepancies(self) -> Iterator[ComparisonRow]:
        return (row for row in self if row.discrepancies())
