from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from clipmix.core.config import settings
from clipmix.schemas.event import Event, coerce_event


@dataclass(frozen=True)
class PlacementRecord:
    offset: int     # interleaved sample index of the first (left) sample
    volume: float
    pan: float


PlacementGroups = Mapping[str, tuple[PlacementRecord, ...]]


def to_offset(time_ms: float, sample_rate: int | None = None, channels: int | None = None) -> int:
    """Interleaved sample index for ``time_ms``, rounded down to a frame boundary."""
    sample_rate = int(sample_rate or settings.PROJECT_SAMPLE_RATE)
    channels = int(channels or settings.CHANNELS)
    t = float(time_ms)
    if not math.isfinite(t) or t < 0:
        raise ValueError(f"time_ms must be a finite non-negative number, got {time_ms!r}")
    val = int(t / 1000.0 * sample_rate * channels)
    return val - (val % channels)


class TimelineBuilder:
    def __init__(self, *, sample_rate: int | None = None, channels: int | None = None) -> None:
        self.sample_rate = int(sample_rate or settings.PROJECT_SAMPLE_RATE)
        self.channels = int(channels or settings.CHANNELS)
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def build(self, events: Iterable[Event | Any]) -> PlacementGroups:
        """
        Group events by source name into placement records.

        Records for the same name keep event order; duplicates are kept so they sum in the mix.
        """
        groups: dict[str, list[PlacementRecord]] = {}
        for ev in events:
            ev = coerce_event(ev)
            record = PlacementRecord(
                offset=to_offset(ev.time_ms, self.sample_rate, self.channels),
                volume=ev.volume,
                pan=ev.pan,
            )
            groups.setdefault(ev.source_name, []).append(record)

        self.logger.debug(
            "Timeline: %d sources, %d placements",
            len(groups),
            sum(len(v) for v in groups.values()),
        )
        return MappingProxyType({name: tuple(records) for name, records in groups.items()})
