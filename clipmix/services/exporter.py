from __future__ import annotations

import io
import logging
from pathlib import Path

import numpy as np
import soundfile as sf

from clipmix.core.config import settings
from clipmix.core.errors import EncodeFailure

PCM16_FULL_SCALE = 32767

# format -> (libsndfile subtype, mime, suffix)
OUTPUT_FORMATS: dict[str, tuple[str, str, str]] = {
    "OGG": ("VORBIS", "audio/ogg", ".ogg"),
    "WAV": ("PCM_16", "audio/wav", ".wav"),
    "FLAC": ("PCM_16", "audio/flac", ".flac"),
}


def to_pcm16(buffer: np.ndarray) -> np.ndarray:
    """Full-scale signed 16-bit PCM: ``round(x * 32767)``."""
    x = np.asarray(buffer, dtype=np.float64)
    return np.round(x * PCM16_FULL_SCALE).astype(np.int16)


def format_for_path(path: str | Path) -> str:
    suffix = Path(path).suffix.lower()
    for fmt, (_, _, fmt_suffix) in OUTPUT_FORMATS.items():
        if suffix == fmt_suffix:
            return fmt
    return "OGG"


class Exporter:
    def __init__(self) -> None:
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def mime_for(self, fmt: str) -> str:
        return OUTPUT_FORMATS[self._checked_format(fmt)][1]

    def encode(
        self,
        pcm: np.ndarray,
        *,
        channels: int | None = None,
        sample_rate: int | None = None,
        quality: float | None = None,
        fmt: str = "OGG",
    ) -> bytes:
        """
        Encode interleaved int16 ``pcm`` to ``fmt``.

        quality is in [0, 1] (higher is better) and only affects Vorbis output.
        """
        channels = int(channels or settings.CHANNELS)
        sample_rate = int(sample_rate or settings.PROJECT_SAMPLE_RATE)
        quality = float(settings.DEFAULT_QUALITY if quality is None else quality)
        fmt = self._checked_format(fmt)
        subtype = OUTPUT_FORMATS[fmt][0]

        pcm = np.asarray(pcm)
        if pcm.dtype != np.int16:
            raise EncodeFailure(f"expected int16 PCM, got {pcm.dtype}")
        if pcm.size % channels != 0:
            raise EncodeFailure(f"{pcm.size} samples do not divide into {channels} channels")
        frames = pcm.reshape(-1, channels)

        extra: dict[str, float] = {}
        if fmt == "OGG":
            if not 0.0 <= quality <= 1.0:
                raise EncodeFailure(f"quality must be within [0, 1], got {quality}")
            # libsndfile's compression level runs the other way (0 = best quality).
            extra["compression_level"] = 1.0 - quality

        buf = io.BytesIO()
        try:
            with sf.SoundFile(
                buf,
                mode="w",
                samplerate=sample_rate,
                channels=channels,
                subtype=subtype,
                format=fmt,
                **extra,
            ) as f:
                f.write(frames)
        except (sf.SoundFileError, RuntimeError, ValueError, TypeError) as exc:
            raise EncodeFailure(str(exc)) from exc

        data = buf.getvalue()
        self.logger.debug("Encoded %d frames to %s (%d bytes)", len(frames), fmt, len(data))
        return data

    def _checked_format(self, fmt: str) -> str:
        key = str(fmt).upper().strip()
        if key not in OUTPUT_FORMATS:
            raise EncodeFailure(f"unsupported output format {fmt!r} (supported: {sorted(OUTPUT_FORMATS)})")
        return key
