"""Value normalisation applied to observation fields before matching.

Matching stays exact: these helpers only remove formatting noise that
collectors disagree on (padding, separator style, letter case of MACs).
"""

from __future__ import annotations

from datetime import UTC, datetime

from .errors import InvalidObservationError


def norm_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def norm_mac(value: object) -> str | None:
    text = norm_text(value)
    if text is None:
        return None
    return text.replace("-", ":").upper()


def norm_count(value: object) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise InvalidObservationError(f"Expected a count, got {value!r}")
    try:
        count = int(value)  # pyright: ignore[reportArgumentType]
    except (TypeError, ValueError) as exc:
        raise InvalidObservationError(f"Expected a count, got {value!r}") from exc
    if count < 0:
        raise InvalidObservationError(f"Count must be non-negative, got {count}")
    return count


def norm_timestamp(value: datetime | str) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""

    if isinstance(value, str):
        normalized = value.strip()
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(normalized)
        except ValueError as exc:
            raise InvalidObservationError(f"Invalid ISO timestamp: {value}") from exc
    if not isinstance(value, datetime):
        raise InvalidObservationError(f"Expected a timestamp, got {value!r}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
