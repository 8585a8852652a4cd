"""Identity lock port."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Hashable, Sequence
    from contextlib import AbstractContextManager


@runtime_checkable
class IdentityLocks(Protocol):
    """Serialise work on overlapping identities.

    Keys are ``(MatchField, value)`` identity pairs or ``("asset", id)``.
    ``hold`` blocks until every key is held, for at most ``timeout`` seconds,
    and raises ``IdentityLockTimeout`` otherwise.
    """

    def hold(
        self,
        keys: Sequence[Hashable],
        *,
        timeout: float | None = None,
    ) -> AbstractContextManager[None]: ...
