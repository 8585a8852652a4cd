"""Pydantic models describing collector records.

Collectors drop one JSON object per line. Identity and timing keys are
named; every other key is an observed field and is checked against the
source's descriptor during ingestion::

    {"source": "HBSS", "last_seen": "2024-05-01T10:00:00Z",
     "mac": "aa-bb-cc-dd-ee-ff", "host_name": "ws-12", "status": "Managed"}

Fields may also be nested under ``"fields"``.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import cast

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from nventory.domain.errors import InvalidObservationError
from nventory.domain.ingestion import ObservationInput


class CollectorRecord(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    source: str
    observed_at: str = Field(
        validation_alias=AliasChoices("observed_at", "last_seen", "timestamp"),
    )
    canonical_asset_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("canonical_asset_id", "asset_id"),
    )
    fields: dict[str, object] = Field(default_factory=dict[str, object])

    @field_validator("source", "observed_at", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip()
        return value

    def observed_fields(self) -> dict[str, object]:
        merged: dict[str, object] = dict(self.fields)
        for key, value in (self.model_extra or {}).items():
            if key in merged:
                raise InvalidObservationError(f"Field {key!r} given both inline and in 'fields'")
            merged[key] = value
        return merged

    def to_input(self) -> ObservationInput:
        return ObservationInput(
            source=self.source,
            fields=self.observed_fields(),
            observed_at=self.observed_at,
            canonical_asset_id=self.canonical_asset_id,
        )


def parse_record(payload: str | Mapping[str, object]) -> ObservationInput:
    """Validate one collector record; any problem becomes ``InvalidObservationError``."""

    try:
        data = json.loads(payload) if isinstance(payload, str) else dict(payload)
    except json.JSONDecodeError as exc:
        raise InvalidObservationError(f"Malformed JSON: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise InvalidObservationError("A record must be a JSON object")
    try:
        record = CollectorRecord.model_validate(cast("dict[str, object]", data))
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        raise InvalidObservationError(f"Invalid record: {problems}") from exc
    return record.to_input()
