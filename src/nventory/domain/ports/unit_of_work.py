"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import TracebackType

    from nventory.domain.model import MatchField
    from nventory.domain.ports.persistence import (
        AssetRepository,
        ComparisonQuery,
        ObservationRepository,
        SourceRegistry,
    )


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection."""

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(slots=True)
class InventoryRepositories(RepositoryCollection):
    """Repositories touched by ingestion and inventory maintenance."""

    assets: AssetRepository
    observations: ObservationRepository
    sources: SourceRegistry
    comparisons: ComparisonQuery


@runtime_checkable
class InventoryUnitOfWork(UnitOfWork[InventoryRepositories], Protocol):
    def lock_identities(self, keys: Sequence[tuple[MatchField, str]]) -> None:
        """Take store-level identity locks released at commit/rollback.

        Stores without cross-process locking implement this as a no-op.
        """
        ...
