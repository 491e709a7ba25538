"""Mix a list of timed audio events into one output file."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from clipmix.core.config import settings
from clipmix.core.errors import ClipmixError
from clipmix.renderers.mix_renderer import TimelineMixRenderer
from clipmix.schemas.event import read_events
from clipmix.services.canonicalizer import Canonicalizer
from clipmix.services.exporter import format_for_path
from clipmix.services.sample_cache import SampleCache
from clipmix.services.storage_service import StorageService

logger = logging.getLogger("clipmix.cli")


def _quality(value: str) -> float:
    try:
        q = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid quality value: {value!r}")
    if not 0.0 <= q <= 1.0:
        raise argparse.ArgumentTypeError(f"quality must be within [0, 1], got {q}")
    return q


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="clipmix",
        description="Place audio clips on a timeline from an event file and render one mixed output.",
    )
    parser.add_argument(
        "-i",
        dest="input",
        required=True,
        metavar="EVENT_FILE",
        help="Headerless CSV of time_ms,volume,pan,source_name records.",
    )
    parser.add_argument(
        "-o",
        dest="output",
        required=True,
        metavar="OUTPUT_FILE",
        help="Output audio path; the suffix picks the format (.ogg, .wav, .flac).",
    )
    parser.add_argument(
        "-q",
        dest="quality",
        type=_quality,
        default=settings.DEFAULT_QUALITY,
        help=f"Vorbis quality in [0, 1] (default: {settings.DEFAULT_QUALITY}).",
    )
    parser.add_argument(
        "--source-dir",
        default=settings.SOURCE_DIR,
        help="Directory that relative source names are resolved against (default: current directory).",
    )
    parser.add_argument(
        "--decode-workers",
        type=int,
        default=settings.DECODE_WORKERS,
        help="Number of sources decoded in parallel.",
    )
    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Logging level.",
    )
    parser.add_argument(
        "--enable-timing-logs",
        action="store_true",
        help="Log the duration of each render phase.",
    )
    parser.add_argument(
        "--enable-debug-logs",
        action="store_true",
        help="Log the render decision payload.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level), format="[%(levelname)s] %(message)s")

    input_path = Path(args.input).expanduser().resolve()
    output_path = Path(args.output).expanduser().resolve()
    fmt = format_for_path(output_path)
    logger.info("Input Path: %s", input_path)
    logger.info("Output Path: %s", output_path)
    logger.info("Output Quality: %s", args.quality)

    renderer = TimelineMixRenderer(
        cache=SampleCache(Canonicalizer(source_dir=args.source_dir)),
        decode_workers=args.decode_workers,
        enable_timing_logs=bool(args.enable_timing_logs),
        enable_debug_logs=bool(args.enable_debug_logs),
    )

    try:
        events = read_events(input_path)
        result = renderer.render(events, quality=float(args.quality), fmt=fmt)
        logger.info("Exporting to %s", output_path)
        stored = StorageService().save_bytes(result.audio_bytes, output_path, mime=result.mime)
    except ClipmixError as exc:
        logger.error("%s: %s", exc.__class__.__name__, exc)
        return 1

    logger.info("Wrote %d bytes (%d ms)", stored.size, result.length_ms)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
