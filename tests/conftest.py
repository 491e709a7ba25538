from __future__ import annotations

import threading

import numpy as np
import pytest

from clipmix.core.errors import SourceUnavailable
from clipmix.services.canonicalizer import CanonicalSample
from clipmix.services.sample_cache import SampleCache


class FakeLoader:
    """Serves canned interleaved stereo frames and records every load."""

    def __init__(self, sources: dict[str, list[float]]):
        self.sources = sources
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def load(self, name: str) -> CanonicalSample:
        with self._lock:
            self.calls.append(name)
        if name not in self.sources:
            raise SourceUnavailable(name, "not in fake loader")
        return CanonicalSample(source_name=name, frames=np.asarray(self.sources[name], dtype=np.float32))


@pytest.fixture
def make_cache():
    def _make(sources: dict[str, list[float]]) -> tuple[SampleCache, FakeLoader]:
        loader = FakeLoader(sources)
        return SampleCache(loader), loader

    return _make
