from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable

from clipmix.core.config import settings
from clipmix.services.canonicalizer import CanonicalSample, Canonicalizer, SourceLoader


class SampleCache:
    """
    Owns one CanonicalSample per distinct source name for the lifetime of a run.

    Guarantees:
    - each name is handed to the loader at most once, even under concurrent requests
    - a loader failure propagates unchanged and nothing is stored for that name
    """

    def __init__(self, loader: SourceLoader | None = None) -> None:
        self.loader = loader or Canonicalizer()
        self._samples: dict[str, CanonicalSample] = {}
        self._name_locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._samples

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._samples)

    def get(self, name: str) -> CanonicalSample | None:
        with self._lock:
            return self._samples.get(name)

    def get_or_load(self, name: str) -> CanonicalSample:
        with self._lock:
            sample = self._samples.get(name)
            if sample is not None:
                return sample
            name_lock = self._name_locks.setdefault(name, threading.Lock())

        # Only callers asking for the same name wait on each other.
        with name_lock:
            with self._lock:
                sample = self._samples.get(name)
            if sample is not None:
                return sample

            sample = self.loader.load(name)
            with self._lock:
                self._samples[name] = sample
            self.logger.debug("Cached %s (%d samples)", name, len(sample))
            return sample

    def preload(self, names: Iterable[str], *, max_workers: int | None = None) -> list[CanonicalSample]:
        """Load every distinct name, decoding independent sources on worker threads."""
        unique = list(dict.fromkeys(names))
        workers = int(max_workers if max_workers is not None else settings.DECODE_WORKERS)
        workers = max(1, min(workers, len(unique) or 1))

        if workers == 1:
            return [self.get_or_load(name) for name in unique]

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="clipmix-decode") as pool:
            futures = [pool.submit(self.get_or_load, name) for name in unique]
            # Join every worker before surfacing the first failure.
            for fut in futures:
                fut.exception()
            return [fut.result() for fut in futures]
