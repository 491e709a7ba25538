from __future__ import annotations

import importlib.util
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import librosa
import numpy as np
import soundfile as sf

from clipmix.core.config import settings
from clipmix.core.errors import ResampleFailure, SourceUnavailable


@dataclass(frozen=True)
class DecodedAudio:
    frames: np.ndarray          # interleaved float32, native channel layout
    sample_rate: int
    channels: int


@dataclass(frozen=True)
class CanonicalSample:
    """Interleaved stereo float32 at the project rate. Read-only once built."""

    source_name: str
    frames: np.ndarray

    def __post_init__(self) -> None:
        frames = np.ascontiguousarray(self.frames, dtype=np.float32).reshape(-1)
        if frames.size % 2 != 0:
            raise ValueError(f"canonical sample {self.source_name!r} is not stereo-interleaved")
        frames.flags.writeable = False
        object.__setattr__(self, "frames", frames)

    def __len__(self) -> int:
        return int(self.frames.size)


class SourceLoader(Protocol):
    def load(self, name: str) -> CanonicalSample:
        ...


class SoundfileDecoder:
    def decode(self, path: str | Path, *, source_name: str | None = None) -> DecodedAudio:
        name = source_name or str(path)
        p = Path(path)
        if not p.is_file():
            raise SourceUnavailable(name, f"file not found: {p}")
        try:
            y, sr = sf.read(str(p), dtype="float32", always_2d=True)
        except (sf.SoundFileError, RuntimeError, OSError) as exc:
            raise SourceUnavailable(name, f"cannot decode: {exc}") from exc

        y = np.asarray(y, dtype=np.float32)
        if y.ndim != 2 or y.shape[0] == 0:
            raise SourceUnavailable(name, "no decodable audio")
        return DecodedAudio(frames=y.reshape(-1), sample_rate=int(sr), channels=int(y.shape[1]))


class LibrosaResampler:
    def __init__(self, res_type: str | None = None) -> None:
        # Prefer SoXR (C-accelerated) when available; fallback to resampy (kaiser_fast).
        res_type = res_type or settings.RESAMPLE_RES_TYPE
        if res_type:
            self.res_type = str(res_type)
        else:
            self.res_type = "soxr_hq" if importlib.util.find_spec("soxr") is not None else "kaiser_fast"

    def resample(
        self,
        frames: np.ndarray,
        *,
        channels: int,
        orig_sr: int,
        target_sr: int,
        source_name: str = "",
    ) -> np.ndarray:
        """Resample interleaved ``frames`` and return them interleaved again."""
        frames = np.asarray(frames, dtype=np.float32)
        if orig_sr == target_sr:
            return frames
        if orig_sr <= 0 or target_sr <= 0:
            raise ResampleFailure(source_name, orig_sr, target_sr, "sample rates must be positive")

        # Resample all channels in one call to keep them aligned.
        y_cf = frames.reshape(-1, channels).T
        try:
            y_rs = self._resample_channels(y_cf, orig_sr=orig_sr, target_sr=target_sr)
        except Exception as exc:
            raise ResampleFailure(source_name, orig_sr, target_sr, str(exc)) from exc

        y_rs = np.asarray(y_rs, dtype=np.float32)
        if y_rs.ndim != 2 or y_rs.shape[0] != channels:
            raise ResampleFailure(source_name, orig_sr, target_sr, f"unexpected output shape {y_rs.shape}")
        return np.ascontiguousarray(y_rs.T).reshape(-1)

    def _resample_channels(self, y: np.ndarray, *, orig_sr: int, target_sr: int) -> np.ndarray:
        res_types: list[str] = [self.res_type]
        # Always include a sane fallback order.
        if "soxr_hq" not in res_types:
            res_types.append("soxr_hq")
        if "kaiser_fast" not in res_types:
            res_types.append("kaiser_fast")

        last_exc: Exception | None = None
        for res_type in res_types:
            try:
                return librosa.resample(y, orig_sr=orig_sr, target_sr=target_sr, res_type=res_type)
            except ModuleNotFoundError as exc:
                last_exc = exc
                msg = str(exc)
                if res_type.startswith("soxr_") and "soxr" in msg:
                    continue
                if res_type.startswith("kaiser") and "resampy" in msg:
                    continue
                raise

        # Last resort: polyphase resampling (deterministic).
        from scipy.signal import resample_poly

        g = math.gcd(int(orig_sr), int(target_sr))
        up = int(target_sr) // g
        down = int(orig_sr) // g
        try:
            rows = [np.asarray(resample_poly(row, up, down), dtype=np.float32) for row in y]
        except Exception:
            if last_exc is not None:
                raise last_exc
            raise
        return np.stack(rows, axis=0)


class Canonicalizer:
    """
    Turns a named source into a CanonicalSample:
    - decodes it at its native layout
    - duplicates a mono channel into left and right
    - resamples to the project rate when the native rate differs
    """

    def __init__(
        self,
        *,
        source_dir: str | Path | None = None,
        sample_rate: int | None = None,
        decoder: SoundfileDecoder | None = None,
        resampler: LibrosaResampler | None = None,
    ) -> None:
        base = source_dir if source_dir is not None else settings.SOURCE_DIR
        self.source_dir = Path(base).expanduser() if base else None
        self.sample_rate = int(sample_rate or settings.PROJECT_SAMPLE_RATE)
        self.decoder = decoder or SoundfileDecoder()
        self.resampler = resampler or LibrosaResampler()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def resolve_path(self, name: str) -> Path:
        p = Path(name).expanduser()
        if self.source_dir is not None and not p.is_absolute():
            p = self.source_dir / p
        return p

    def load(self, name: str) -> CanonicalSample:
        self.logger.info("Loading source %s", name)
        decoded = self.decoder.decode(self.resolve_path(name), source_name=name)
        frames = decoded.frames

        if decoded.channels == 1:
            self.logger.info("Source %s is mono; duplicating to stereo.", name)
            frames = np.repeat(frames, 2)
        elif decoded.channels != 2:
            raise SourceUnavailable(name, f"unsupported channel count {decoded.channels} (expected 1 or 2)")

        if decoded.sample_rate != self.sample_rate:
            self.logger.info("Resampling %s from %d to %d.", name, decoded.sample_rate, self.sample_rate)
            frames = self.resampler.resample(
                frames,
                channels=2,
                orig_sr=decoded.sample_rate,
                target_sr=self.sample_rate,
                source_name=name,
            )

        return CanonicalSample(source_name=name, frames=frames)
