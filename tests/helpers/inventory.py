"""In-memory fakes for the inventory ports."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field, fields
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Literal

from nventory.domain.comparison import build_comparison_row
from nventory.domain.errors import DuplicateSerialNumberError
from nventory.domain.model import CanonicalAsset, DataSource, SourceName
from nventory.domain.ports.unit_of_work import InventoryRepositories
from nventory.domain.sources import SOURCE_DESCRIPTORS

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Iterator, Sequence
    from types import TracebackType

    from nventory.domain.comparison import ComparisonRow
    from nventory.domain.model import MatchField, SourceObservation
    from nventory.domain.sources import SourceDescriptor

T0 = datetime(2024, 5, 1, 10, 0, tzinfo=UTC)


class FakeClock:
    """Returns ``start``, then moves forward by ``step`` on every call."""

    def __init__(self, start: datetime = T0, step: timedelta = timedelta(seconds=1)) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + self.step
        return current


@dataclass
class InventoryState:
    assets: dict[int, CanonicalAsset] = field(default_factory=dict[int, CanonicalAsset])
    observations: list[SourceObservation] = field(default_factory=list["SourceObservation"])
    sources: dict[SourceName, DataSource] = field(default_factory=dict[SourceName, DataSource])
    next_asset_id: int = 1
    next_observation_id: int = 1


def _clone[T](entity: T) -> T:
    # field-wise so that ORM instance state is never shared
    values = {item.name: getattr(entity, item.name) for item in fields(entity)}  # pyright: ignore
    return type(entity)(**values)


def _clone_state(state: InventoryState) -> InventoryState:
    return InventoryState(
        assets={asset_id: _clone(asset) for asset_id, asset in state.assets.items()},
        observations=[_clone(observation) for observation in state.observations],
        sources={name: _clone(entry) for name, entry in state.sources.items()},
        next_asset_id=state.next_asset_id,
        next_observation_id=state.next_observation_id,
    )


def seeded_state() -> InventoryState:
    return InventoryState(
        sources={
            name: DataSource(name=name, description=descriptor.description, id=index)
            for index, (name, descriptor) in enumerate(SOURCE_DESCRIPTORS.items(), start=1)
        }
    )


class FakeAssetRepository:
    def __init__(self, state: InventoryState) -> None:
        self.state = state

    def add(self, entity: CanonicalAsset) -> None:
        entity.id = self.state.next_asset_id
        self.state.next_asset_id += 1
        self.state.assets[entity.id] = entity
        self.flush()

    def get(self, asset_id: int, *, for_update: bool = False) -> CanonicalAsset | None:
        _ = for_update
        return self.state.assets.get(asset_id)

    def find_first(self, field: MatchField, value: str) -> CanonicalAsset | None:
        for asset_id in sorted(self.state.assets):
            asset = self.state.assets[asset_id]
            if getattr(asset, field.value) == value:
                return asset
        return None

    def get_by_serial(self, serial_number: str) -> CanonicalAsset | None:
        for asset in self.state.assets.values():
            if asset.serial_number == serial_number:
                return asset
        return None

    def remove(self, asset: CanonicalAsset) -> None:
        assert asset.id is not None
        del self.state.assets[asset.id]
        for observation in self.state.observations:
            if observation.canonical_asset_id == asset.id:
                observation.canonical_asset_id = None

    def flush(self) -> None:
        seen: set[str] = set()
        for asset in self.state.assets.values():
            if asset.serial_number is None:
                continue
            if asset.serial_number in seen:
                raise DuplicateSerialNumberError(asset.serial_number)
            seen.add(asset.serial_number)


class FakeObservationRepository:
    def __init__(self, state: InventoryState) -> None:
        self.state = state

    def add(self, entity: SourceObservation) -> None:
        entity.id = self.state.next_observation_id
        self.state.next_observation_id += 1
        self.state.observations.append(entity)

    def for_asset(
        self, asset_id: int, *, source: SourceName | None = None
    ) -> Sequence[SourceObservation]:
        matches = [
            observation
            for observation in self.state.observations
            if observation.canonical_asset_id == asset_id
            and (source is None or observation.source == source)
        ]
        return tuple(sorted(matches, key=lambda item: (item.observed_at, item.id or 0)))


class FakeSourceRegistry:
    def __init__(self, state: InventoryState) -> None:
        self.state = state

    def get(self, name: SourceName) -> DataSource | None:
        return self.state.sources.get(name)

    def list(self) -> Sequence[DataSource]:
        return tuple(sorted(self.state.sources.values(), key=lambda entry: entry.id or 0))


class FakeComparisonQuery:
    def __init__(self, state: InventoryState) -> None:
        self.state = state

    def iter_rows(
        self, descriptor: SourceDescriptor, *, latest_only: bool = False
    ) -> Iterator[ComparisonRow]:
        for asset_id in sorted(self.state.assets):
            asset = self.state.assets[asset_id]
            observations = FakeObservationRepository(self.state).for_asset(
                asset_id, source=descriptor.name
            )
            if latest_only:
                observations = observations[-1:]
            asset_values = asset.snapshot()
            if not observations:
                yield build_comparison_row(
                    descriptor, asset_values=asset_values, observation_values=None
                )
                continue
            for observation in observations:
                yield build_comparison_row(
                    descriptor,
                    asset_values=asset_values,
                    observation_values={
                        "id": observation.id,
                        **{
                            name: observation.value_of(name)
                            for name in descriptor.reported_columns
                        },
                    },
                )


class FakeInventoryStore:
    """Committed state shared by every unit of work the factory hands out."""

    def __init__(self, state: InventoryState | None = None) -> None:
        self.state = state or seeded_state()
        self.commits = 0
        self.rollbacks = 0
        self.locked: list[tuple[tuple[MatchField, str], ...]] = []
        self.before_commit: Callable[[FakeInventoryUnitOfWork], None] | None = None

    def factory(self) -> FakeInventoryUnitOfWork:
        return FakeInventoryUnitOfWork(self)


class FakeInventoryUnitOfWork:
    """Works on a private copy of the store; ``commit`` publishes it."""

    def __init__(self, store: FakeInventoryStore) -> None:
        self.store = store
        self.state = _clone_state(store.state)
        self._repositories = self._build(self.state)

    @staticmethod
    def _build(state: InventoryState) -> InventoryRepositories:
        return InventoryRepositories(
            assets=FakeAssetRepository(state),
            observations=FakeObservationRepository(state),
            sources=FakeSourceRegistry(state),
            comparisons=FakeComparisonQuery(state),
        )

    @property
    def repositories(self) -> InventoryRepositories:
        return self._repositories

    def __enter__(self) -> FakeInventoryUnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        return False

    def commit(self) -> None:
        if self.store.before_commit is not None:
            self.store.before_commit(self)
        self.store.state = self.state
        self.state = _clone_state(self.state)
        self._repositories = self._build(self.state)
        self.store.commits += 1

    def rollback(self) -> None:
        self.state = _clone_state(self.store.state)
        self._repositories = self._build(self.state)
        self.store.rollbacks += 1

    def lock_identities(self, keys: Sequence[tuple[MatchField, str]]) -> None:
        self.store.locked.append(tuple(keys))


class RecordingLocks:
    """Identity locks that only remember what was requested."""

    def __init__(self) -> None:
        self.requests: list[tuple[tuple[Hashable, ...], float | None]] = []

    @contextmanager
    def hold(self, keys: Sequence[Hashable], *, timeout: float | None = None) -> Iterator[None]:
        self.requests.append((tuple(keys), timeout))
        yield
