"""Ports for persisting the inventory aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from nventory.domain.model import CanonicalAsset, DataSource, SourceObservation

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from nventory.domain.comparison import ComparisonRow
    from nventory.domain.model import MatchField, SourceName
    from nventory.domain.sources import SourceDescriptor


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class AssetRepository(Repository[CanonicalAsset], Protocol):
    """Canonical store.

    ``add`` must assign ``id`` before returning so resolution can hand it on.
    """

    def get(self, asset_id: int, *, for_update: bool = False) -> CanonicalAsset | None:
        """Load an asset; ``for_update`` re-reads it and holds a row lock until commit."""
        ...

    def find_first(self, field: MatchField, value: str) -> CanonicalAsset | None:
        """Lowest-id asset whose ``field`` equals ``value`` (never matches NULL)."""
        ...

    def get_by_serial(self, serial_number: str) -> CanonicalAsset | None: ...

    def remove(self, asset: CanonicalAsset) -> None: ...

    def flush(self) -> None:
        """Push pending changes, translating serial collisions to domain errors."""
        ...


@runtime_checkable
class ObservationRepository(Repository[SourceObservation], Protocol):
    """Append-only source ledger."""

    def for_asset(
        self, asset_id: int, *, source: SourceName | None = None
    ) -> Sequence[SourceObservation]: ...


@runtime_checkable
class SourceRegistry(Protocol):
    def get(self, name: SourceName) -> DataSource | None: ...

    def list(self) -> Sequence[DataSource]: ...


@runtime_checkable
class ComparisonQuery(Protocol):
    """Read-only canonical-vs-source projection."""

    def iter_rows(
        self, descriptor: SourceDescriptor, *, latest_only: bool = False
    ) -> Iterator[ComparisonRow]: ...
