"""
Waveform Extractor - Peak profiles for seek bars.

Decoding runs on a small thread pool. Results are cached per resource
for the process lifetime; a request for a resource that is already
being decoded waits on the same job instead of decoding again.
"""
import random
import hashlib
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Tuple

import numpy as np

from ..config import SAMPLE_RATE, WAVEFORM_BARS, WAVEFORM_WORKERS
from ..errors import ResourceUnavailableError

logger = logging.getLogger(__name__)

Decoder = Callable[[str, int], np.ndarray]


def compute_peaks(samples: np.ndarray, bar_count: int) -> List[float]:
    """Max absolute sample value in each of bar_count evenly spaced buckets."""
    if bar_count <= 0:
        return []
    magnitudes = np.abs(samples)
    if magnitudes.ndim == 2:
        magnitudes = magnitudes.max(axis=1)
    peaks = []
    for bucket in np.array_split(magnitudes, bar_count):
        peaks.append(float(bucket.max()) if bucket.size else 0.0)
    return peaks


def synthetic_peaks(resource: str, bar_count: int) -> List[float]:
    """Deterministic stand-in profile for resources that cannot be decoded."""
    seed = int(hashlib.md5(resource.encode('utf-8')).hexdigest()[:8], 16)
    rng = random.Random(seed)
    return [round(rng.uniform(0.15, 1.0), 4) for _ in range(max(0, bar_count))]


def _copy_when_done(source: Future) -> Future:
    """A future resolving to a copy of source's list."""
    result: Future = Future()

    def relay(done: Future):
        if done.cancelled():
            result.cancel()
        elif done.exception() is not None:
            result.set_exception(done.exception())
        else:
            result.set_result(list(done.result()))

    source.add_done_callback(relay)
    return result


class WaveformExtractor:
    """Decodes resources once and serves cached peak arrays."""

    def __init__(self, decoder: Decoder, sample_rate: int = SAMPLE_RATE,
                 max_workers: int = WAVEFORM_WORKERS):
        self._decoder = decoder
        self.sample_rate = sample_rate
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='waveform')
        self._cache: Dict[Tuple[str, int], List[float]] = {}
        self._in_flight: Dict[Tuple[str, int], Future] = {}
        self._lock = threading.RLock()
        self.decode_count = 0

    def get_peaks(self, resource: str, bar_count: int = WAVEFORM_BARS) -> Future:
        """Future resolving to bar_count peaks for resource.

        Never resolves with an error: decode failures yield the synthetic
        profile. Callers discard stale results themselves.
        """
        key = (resource, bar_count)
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                done: Future = Future()
                done.set_result(list(cached))
                return done

            pending = self._in_flight.get(key)
            if pending is None:
                pending = self._executor.submit(self._extract, resource, bar_count)
                self._in_flight[key] = pending
                pending.add_done_callback(lambda f, key=key: self._finish(key, f))
            return _copy_when_done(pending)

    def peek(self, resource: str, bar_count: int = WAVEFORM_BARS):
        """Cached peaks or None, without starting a decode."""
        with self._lock:
            cached = self._cache.get((resource, bar_count))
        return list(cached) if cached is not None else None

    def cancel(self, resource: str, bar_count: int = WAVEFORM_BARS) -> bool:
        """Cancel a queued extraction. Returns False once decoding has started."""
        with self._lock:
            pending = self._in_flight.get((resource, bar_count))
        return pending.cancel() if pending is not None else False

    def _extract(self, resource: str, bar_count: int) -> List[float]:
        with self._lock:
            self.decode_count += 1
        try:
            samples = self._decoder(resource, self.sample_rate)
        except ResourceUnavailableError as e:
            logger.info(f'Waveform fallback for {resource}: {e}')
            return synthetic_peaks(resource, bar_count)
        except Exception as e:
            logger.warning(f'Unexpected waveform decode error for {resource}: {e}', exc_info=True)
            return synthetic_peaks(resource, bar_count)
        return compute_peaks(samples, bar_count)

    def _finish(self, key, future: Future):
        with self._lock:
            self._in_flight.pop(key, None)
            if not future.cancelled() and future.exception() is None:
                self._cache[key] = future.result()

    def close(self):
        self._executor.shutdown(wait=False, cancel_futures=True)
