from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Iterable

import numpy as np

from clipmix.core.config import settings
from clipmix.schemas.event import Event
from clipmix.services.exporter import Exporter, to_pcm16
from clipmix.services.sample_cache import SampleCache
from clipmix.services.timeline import PlacementGroups, PlacementRecord, TimelineBuilder

STEREO = 2


@dataclass(frozen=True)
class RenderResult:
    audio_bytes: bytes
    mime: str
    length_ms: int
    sample_count: int           # interleaved samples in the mixed buffer
    debug: dict[str, Any] | None = None


def pan_gains(pan: float) -> tuple[float, float]:
    """Linear pan law: (left, right) gain, each saturated to [0, 1]."""
    if pan == 0.0:
        return 1.0, 1.0
    left = min(max(1.0 - pan, 0.0), 1.0)
    right = min(max(1.0 + pan, 0.0), 1.0)
    return left, right


def required_length(cache: SampleCache, groups: PlacementGroups) -> int:
    length = 0
    for name, records in groups.items():
        if not records:
            continue
        sample = cache.get(name)
        if sample is None:
            continue
        length = max(length, max(r.offset for r in records) + len(sample))
    return length


class MixEngine:
    """
    Sums every placement into one float32 buffer, then hard-clips it once.

    Accumulation is serial, so the output is bit-for-bit reproducible for a given
    timeline regardless of how sources were decoded.
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def mix(self, cache: SampleCache, groups: PlacementGroups) -> np.ndarray:
        buffer = np.zeros(required_length(cache, groups), dtype=np.float32)
        for name, records in groups.items():
            sample = cache.get(name)
            if sample is None:
                self.logger.warning("No loaded sample for %s; skipping %d placements", name, len(records))
                continue
            for record in records:
                self.accumulate(buffer, sample.frames, record)
        return self.clip(buffer)

    def accumulate(self, buffer: np.ndarray, frames: np.ndarray, record: PlacementRecord) -> None:
        n = int(frames.size)
        end = record.offset + n
        if record.offset % STEREO or n % STEREO:
            raise ValueError(f"placement at {record.offset} of {n} samples is not frame aligned")
        if end > buffer.size:
            raise ValueError(f"placement ends at {end}, past buffer length {buffer.size}")

        left, right = pan_gains(record.pan)
        gains = np.array([left, right], dtype=np.float32) * np.float32(record.volume)
        dest = buffer[record.offset:end].reshape(-1, STEREO)
        dest += frames.reshape(-1, STEREO) * gains

    def clip(self, buffer: np.ndarray) -> np.ndarray:
        np.clip(buffer, -1.0, 1.0, out=buffer)
        return buffer


class TimelineMixRenderer:
    """
    Two-phase render:
    1) decode every distinct source (independent, parallel), then join
    2) place, mix, clip and encode on the calling thread
    """

    def __init__(
        self,
        *,
        cache: SampleCache | None = None,
        timeline: TimelineBuilder | None = None,
        engine: MixEngine | None = None,
        exporter: Exporter | None = None,
        decode_workers: int | None = None,
        enable_timing_logs: bool = False,
        enable_debug_logs: bool = False,
    ) -> None:
        self.sample_rate = int(settings.PROJECT_SAMPLE_RATE)
        self.cache = cache if cache is not None else SampleCache()
        self.timeline = timeline or TimelineBuilder(sample_rate=self.sample_rate, channels=STEREO)
        self.engine = engine or MixEngine()
        self.exporter = exporter or Exporter()
        self.decode_workers = decode_workers
        self.enable_timing_logs = enable_timing_logs
        self.enable_debug_logs = enable_debug_logs
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def mix_events(self, events: Iterable[Event], debug: dict[str, Any] | None = None) -> np.ndarray:
        """Build the timeline, load its sources and return the clipped float buffer."""
        debug = debug if debug is not None else {}

        step_start = time.perf_counter()
        groups = self.timeline.build(events)
        self._record_timing(debug, "build_timeline", step_start)
        decisions = debug.setdefault("decisions", {})
        decisions["sources"] = sorted(groups)
        decisions["placements"] = sum(len(v) for v in groups.values())

        step_start = time.perf_counter()
        self.cache.preload(groups.keys(), max_workers=self.decode_workers)
        self._record_timing(debug, "load_sources", step_start)

        step_start = time.perf_counter()
        buffer = self.engine.mix(self.cache, groups)
        self._record_timing(debug, "mix", step_start)
        decisions["sample_count"] = int(buffer.size)
        return buffer

    def render(self, events: Iterable[Event], *, quality: float | None = None, fmt: str = "OGG") -> RenderResult:
        total_start = time.perf_counter()
        debug: dict[str, Any] = {"timing_s": {}, "decisions": {"format": fmt}}

        buffer = self.mix_events(events, debug)

        step_start = time.perf_counter()
        audio_bytes = self.exporter.encode(
            to_pcm16(buffer),
            channels=STEREO,
            sample_rate=self.sample_rate,
            quality=quality,
            fmt=fmt,
        )
        self._record_timing(debug, "encode_output", step_start)

        length_ms = int(round((buffer.size / STEREO / self.sample_rate) * 1000))
        debug["decisions"]["length_ms"] = length_ms
        debug["decisions"]["encoded_bytes"] = len(audio_bytes)
        self._record_timing(debug, "total", total_start)
        self._emit_render_debug(debug)
        return RenderResult(
            audio_bytes=audio_bytes,
            mime=self.exporter.mime_for(fmt),
            length_ms=length_ms,
            sample_count=int(buffer.size),
            debug=debug,
        )

    def _record_timing(self, debug: dict[str, Any], label: str, start: float) -> None:
        elapsed = float(time.perf_counter() - start)
        timing = debug.setdefault("timing_s", {})
        timing[label] = elapsed
        if self.enable_timing_logs:
            self.logger.info("Render timing %s: %.3fs", label, elapsed)

    def _emit_render_debug(self, debug: dict[str, Any]) -> None:
        if self.enable_debug_logs:
            self.logger.info("Render debug payload: %s", debug.get("decisions", {}))
