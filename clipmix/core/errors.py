from __future__ import annotations

from typing import Any


class ClipmixError(Exception):
    """Base class for every fatal pipeline condition."""


class InvalidEvent(ClipmixError):
    def __init__(self, field: str, value: Any, reason: str, *, line_no: int | None = None) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        self.line_no = line_no
        where = f"line {line_no}: " if line_no is not None else ""
        super().__init__(f"{where}invalid {field} {value!r}: {reason}")


class SourceUnavailable(ClipmixError):
    def __init__(self, source_name: str, reason: str) -> None:
        self.source_name = source_name
        self.reason = reason
        super().__init__(f"source {source_name!r} unavailable: {reason}")


class ResampleFailure(ClipmixError):
    def __init__(self, source_name: str, orig_sr: int, target_sr: int, reason: str) -> None:
        self.source_name = source_name
        self.orig_sr = orig_sr
        self.target_sr = target_sr
        self.reason = reason
        super().__init__(f"cannot resample {source_name!r} from {orig_sr} Hz to {target_sr} Hz: {reason}")


class EncodeFailure(ClipmixError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"encode failed: {reason}")


class EventFileUnreadable(ClipmixError):
    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"cannot read event file {path}: {reason}")


class OutputWriteFailure(ClipmixError):
    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"cannot write output file {path}: {reason}")
