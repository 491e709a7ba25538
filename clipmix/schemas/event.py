from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Any, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from clipmix.core.errors import EventFileUnreadable, InvalidEvent

EVENT_FIELDS = ("time_ms", "volume", "pan", "source_name")


class Event(BaseModel):
    """One timeline occurrence of a source."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False, str_strip_whitespace=True)

    time_ms: float = Field(ge=0.0)
    volume: float
    pan: float
    source_name: str = Field(min_length=1)

    @field_validator("source_name")
    @classmethod
    def _non_blank_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("source name must not be empty")
        return v


def _invalid(exc: ValidationError, raw: dict[str, Any], line_no: int | None) -> InvalidEvent:
    err = exc.errors()[0]
    loc = err.get("loc") or ("record",)
    field = str(loc[0])
    return InvalidEvent(field, raw.get(field, err.get("input")), str(err.get("msg")), line_no=line_no)


def coerce_event(record: Any, line_no: int | None = None) -> Event:
    """Validate an ``Event`` or any object exposing the four event attributes."""
    if isinstance(record, Event):
        return record
    raw = {name: getattr(record, name, None) for name in EVENT_FIELDS}
    try:
        return Event.model_validate(raw)
    except ValidationError as exc:
        raise _invalid(exc, raw, line_no) from exc


def parse_event_row(fields: Sequence[str], line_no: int | None = None) -> Event:
    if len(fields) != len(EVENT_FIELDS):
        raise InvalidEvent(
            "record",
            list(fields),
            f"expected {len(EVENT_FIELDS)} fields ({', '.join(EVENT_FIELDS)}), got {len(fields)}",
            line_no=line_no,
        )
    raw = {name: value.strip() for name, value in zip(EVENT_FIELDS, fields)}
    try:
        return Event(**raw)
    except ValidationError as exc:
        raise _invalid(exc, raw, line_no) from exc


def load_events_text(text: str) -> list[Event]:
    """Parse headerless ``time_ms,volume,pan,source_name`` records from a string."""
    reader = csv.reader(io.StringIO(text))
    events: list[Event] = []
    for row in reader:
        if not row or all(not cell.strip() for cell in row):
            continue
        events.append(parse_event_row(row, reader.line_num))
    return events


def read_events(path: str | Path) -> list[Event]:
    p = Path(path).expanduser()
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise EventFileUnreadable(str(p), str(exc)) from exc
    return load_events_text(text)
