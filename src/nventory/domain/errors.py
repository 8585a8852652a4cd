"""Errors raised by the inventory core."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class InventoryError(Exception):
    """Base class for all structured inventory errors."""

    retryable: bool = False


class UnknownSourceError(InventoryError, ValueError):
    """The named source is not part of the provisioned registry."""

    def __init__(self, source: object) -> None:
        super().__init__(f"Unknown source: {source!r}")
        self.source = source


class InvalidObservationError(InventoryError, ValueError):
    """The observation payload does not fit its source's schema."""


class DuplicateSerialNumberError(InventoryError):
    """Another asset already holds the serial number."""

    def __init__(self, serial_number: str, *, holder_id: int | None = None) -> None:
        detail = f" (held by asset {holder_id})" if holder_id is not None else ""
        super().__init__(f"Serial number {serial_number!r} is already assigned{detail}")
        self.serial_number = serial_number
        self.holder_id = holder_id


class AssetNotFoundError(InventoryError, LookupError):
    def __init__(self, asset_id: int) -> None:
        super().__init__(f"Asset {asset_id} does not exist")
        self.asset_id = asset_id


class StaleAssetReferenceError(InventoryError):
    """The merge target vanished between resolution and merge.

    Nothing was written; the caller should resolve the observation again.
    """

    retryable = True

    def __init__(self, asset_id: int) -> None:
        super().__init__(f"Asset {asset_id} no longer exists; re-resolve the observation")
        self.asset_id = asset_id


class ResolutionRace(InventoryError):  # noqa: N818
    """A concurrent ingestion created an asset for the same identity.

    Handled inside ingestion by re-resolving; only surfaces once the retry
    budget is spent.
    """

    retryable = True

    def __init__(self, created_id: int, winner_id: int) -> None:
        super().__init__(
            f"Asset {created_id} lost a creation race to asset {winner_id}"
        )
        self.created_id = created_id
        self.winner_id = winner_id


class IdentityLockTimeout(InventoryError):  # noqa: N818
    """An identity lock could not be acquired in time."""

    retryable = True

    def __init__(self, keys: Iterable[object], timeout: float) -> None:
        rendered = ", ".join(str(key) for key in keys)
        super().__init__(f"Timed out after {timeout}s waiting for identity lock: {rendered}")
        self.timeout = timeout
