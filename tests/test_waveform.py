"""
Tests for WaveformExtractor - peaks, caching, shared in-flight decodes.
"""
import threading
import pytest
import numpy as np
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from melodix.audio.waveform import WaveformExtractor, compute_peaks, synthetic_peaks
from melodix.errors import ResourceUnavailableError

SR = 8000


class TestPeaks:
    """Tests for peak computation."""

    def test_max_abs_per_bucket(self):
        samples = np.array([[0.1, -0.2], [0.05, 0.0], [-0.9, 0.3], [0.4, 0.2]], dtype=np.float32)
        assert compute_peaks(samples, 2) == pytest.approx([0.2, 0.9])

    def test_bar_count_respected(self):
        samples = np.zeros((1000, 2), dtype=np.float32)
        assert len(compute_peaks(samples, 120)) == 120

    def test_more_bars_than_samples(self):
        samples = np.ones((3, 2), dtype=np.float32)
        assert compute_peaks(samples, 5) == [1.0, 1.0, 1.0, 0.0, 0.0]

    def test_synthetic_is_deterministic(self):
        first = synthetic_peaks('missing.mp3', 50)
        assert first == synthetic_peaks('missing.mp3', 50)
        assert first != synthetic_peaks('other.mp3', 50)
        assert all(0.15 <= p <= 1.0 for p in first)


class TestExtractor:
    """Tests for the decode-once cache."""

    def test_resolves_peaks(self, fake_decoder):
        extractor = WaveformExtractor(fake_decoder, SR)
        try:
            peaks = extractor.get_peaks('mem://a', 10).result(timeout=5)
        finally:
            extractor.close()
        assert peaks == pytest.approx([0.5] * 10)

    def test_cached_after_first_request(self, fake_decoder):
        extractor = WaveformExtractor(fake_decoder, SR)
        try:
            first = extractor.get_peaks('mem://a', 10).result(timeout=5)
            second = extractor.get_peaks('mem://a', 10).result(timeout=5)
        finally:
            extractor.close()
        assert first == second
        assert extractor.decode_count == 1
        assert extractor.peek('mem://a', 10) == first

    def test_results_are_independent_copies(self, fake_decoder):
        extractor = WaveformExtractor(fake_decoder, SR)
        try:
            first = extractor.get_peaks('mem://a', 4).result(timeout=5)
            first[0] = 99.0
            second = extractor.get_peaks('mem://a', 4).result(timeout=5)
        finally:
            extractor.close()
        assert second[0] == pytest.approx(0.5)

    def test_concurrent_requests_share_one_decode(self):
        gate = threading.Event()
        calls = []

        def slow_decoder(resource, sample_rate):
            calls.append(resource)
            gate.wait(timeout=5)
            return np.full((800, 2), 0.25, dtype=np.float32)

        extractor = WaveformExtractor(slow_decoder, SR)
        try:
            futures = [extractor.get_peaks('mem://slow', 8) for _ in range(5)]
            gate.set()
            results = [f.result(timeout=5) for f in futures]
        finally:
            extractor.close()

        assert calls == ['mem://slow']
        assert all(r == results[0] for r in results)

    def test_bar_count_is_part_of_key(self, fake_decoder):
        extractor = WaveformExtractor(fake_decoder, SR)
        try:
            assert len(extractor.get_peaks('mem://a', 10).result(timeout=5)) == 10
            assert len(extractor.get_peaks('mem://a', 20).result(timeout=5)) == 20
        finally:
            extractor.close()

    def test_decode_failure_resolves_to_fallback(self, fake_decoder):
        fake_decoder.missing.add('gone.mp3')
        extractor = WaveformExtractor(fake_decoder, SR)
        try:
            peaks = extractor.get_peaks('gone.mp3', 30).result(timeout=5)
        finally:
            extractor.close()
        assert peaks == synthetic_peaks('gone.mp3', 30)

    def test_unexpected_decoder_error_resolves_to_fallback(self):
        def broken(resource, sample_rate):
            raise RuntimeError('codec exploded')

        extractor = WaveformExtractor(broken, SR)
        try:
            peaks = extractor.get_peaks('x.flac', 12).result(timeout=5)
        finally:
            extractor.close()
        assert peaks == synthetic_peaks('x.flac', 12)

    def test_peek_does_not_decode(self, fake_decoder):
        extractor = WaveformExtractor(fake_decoder, SR)
        try:
            assert extractor.peek('mem://a') is None
        finally:
            extractor.close()
        assert fake_decoder.calls == []

    def test_cancel_queued_extraction(self):
        gate = threading.Event()
        calls = []

        def slow_decoder(resource, sample_rate):
            calls.append(resource)
            gate.wait(timeout=5)
            return np.full((800, 2), 0.25, dtype=np.float32)

        extractor = WaveformExtractor(slow_decoder, SR, max_workers=1)
        try:
            busy = extractor.get_peaks('mem://first', 8)
            queued = extractor.get_peaks('mem://second', 8)

            assert extractor.cancel('mem://second', 8)
            assert queued.cancelled()

            gate.set()
            assert busy.result(timeout=5) == pytest.approx([0.25] * 8)
        finally:
            extractor.close()

        assert 'mem://second' not in calls
        assert extractor.peek('mem://second', 8) is None

    def test_cancel_after_decode_started(self):
        gate = threading.Event()
        started = threading.Event()

        def slow_decoder(resource, sample_rate):
            started.set()
            gate.wait(timeout=5)
            return np.full((800, 2), 0.25, dtype=np.float32)

        extractor = WaveformExtractor(slow_decoder, SR, max_workers=1)
        try:
            future = extractor.get_peaks('mem://a', 8)
            assert started.wait(timeout=5)
            assert not extractor.cancel('mem://a', 8)
            gate.set()
            assert len(future.result(timeout=5)) == 8
            assert not extractor.cancel('mem://unknown', 8)
        finally:
            extractor.close()
