"""
DSP Stages - Equalizer, spectrum analyser and limiter.

All stages process float32 blocks shaped (frames, channels) and keep
their own state between blocks.
"""
import math
import logging
from typing import List

import numpy as np
from scipy.signal import sosfilt

from .params import AudioParam
from ..config import (
    EQ_BANDS, EQ_Q, SMOOTHING_TIME_CONSTANT,
    FFT_SIZE, ANALYSER_SMOOTHING, ANALYSER_MIN_DB, ANALYSER_MAX_DB,
    LIMITER_THRESHOLD_DB, LIMITER_KNEE_DB, LIMITER_RATIO, LIMITER_ATTACK, LIMITER_RELEASE,
)

logger = logging.getLogger(__name__)


# ============================================
# BIQUAD DESIGN (RBJ audio EQ cookbook)
# ============================================

def biquad_coefficients(kind: str, frequency: float, gain_db: float,
                        sample_rate: int, q: float = EQ_Q) -> np.ndarray:
    """Second-order section [b0, b1, b2, 1, a1, a2] for a shelf or peak filter."""
    A = 10.0 ** (gain_db / 40.0)
    w0 = 2.0 * math.pi * frequency / float(sample_rate)
    cos_w0 = math.cos(w0)
    sin_w0 = math.sin(w0)

    if kind == 'peaking':
        alpha = sin_w0 / (2.0 * q)
        b0 = 1.0 + alpha * A
        b1 = -2.0 * cos_w0
        b2 = 1.0 - alpha * A
        a0 = 1.0 + alpha / A
        a1 = -2.0 * cos_w0
        a2 = 1.0 - alpha / A
    elif kind in ('lowshelf', 'highshelf'):
        # Shelf slope S = 1
        alpha = sin_w0 / 2.0 * math.sqrt(2.0)
        sqrt_a = 2.0 * math.sqrt(A) * alpha
        if kind == 'lowshelf':
            b0 = A * ((A + 1) - (A - 1) * cos_w0 + sqrt_a)
            b1 = 2 * A * ((A - 1) - (A + 1) * cos_w0)
            b2 = A * ((A + 1) - (A - 1) * cos_w0 - sqrt_a)
            a0 = (A + 1) + (A - 1) * cos_w0 + sqrt_a
            a1 = -2 * ((A - 1) + (A + 1) * cos_w0)
            a2 = (A + 1) + (A - 1) * cos_w0 - sqrt_a
        else:
            b0 = A * ((A + 1) + (A - 1) * cos_w0 + sqrt_a)
            b1 = -2 * A * ((A - 1) + (A + 1) * cos_w0)
            b2 = A * ((A + 1) + (A - 1) * cos_w0 - sqrt_a)
            a0 = (A + 1) - (A - 1) * cos_w0 + sqrt_a
            a1 = 2 * ((A - 1) - (A + 1) * cos_w0)
            a2 = (A + 1) - (A - 1) * cos_w0 - sqrt_a
    else:
        raise ValueError(f'Unknown filter type: {kind}')

    return np.array([b0 / a0, b1 / a0, b2 / a0, 1.0, a1 / a0, a2 / a0], dtype=np.float64)


class Equalizer:
    """
    Fixed 3-band EQ: low-shelf 100 Hz, peaking 1 kHz, high-shelf 10 kHz.

    Band gains are AudioParams approaching their targets with a time
    constant; coefficients are redesigned once per block from the
    smoothed gains, and filter state carries across blocks.
    """

    def __init__(self, sample_rate: int, channels: int):
        self.sample_rate = sample_rate
        self.channels = channels
        self.bands = EQ_BANDS
        self.gains: List[AudioParam] = [AudioParam(0.0, sample_rate) for _ in self.bands]
        self._zi = np.zeros((len(self.bands), 2, channels), dtype=np.float64)

    def set_gains(self, gains_db: List[float], now: float, time_constant: float = SMOOTHING_TIME_CONSTANT):
        if len(gains_db) != len(self.bands):
            raise ValueError(f'Equalizer expects {len(self.bands)} gains')
        for param, gain in zip(self.gains, gains_db):
            param.set_target(float(gain), now, time_constant)

    def sos_at(self, t: float) -> np.ndarray:
        return np.array([
            biquad_coefficients(band['type'], band['frequency'], param.value_at(t), self.sample_rate)
            for band, param in zip(self.bands, self.gains)
        ])

    def process(self, x: np.ndarray, start_time: float) -> np.ndarray:
        if x.size == 0:
            return x
        flat = all(param.target == 0.0 and param.value_at(start_time) == 0.0 for param in self.gains)
        if flat and not self._zi.any():
            return x
        y, self._zi = sosfilt(self.sos_at(start_time), x, axis=0, zi=self._zi)
        return y.astype(np.float32, copy=False)


# ============================================
# ANALYSER
# ============================================

class Analyser:
    """
    Spectrum tap. The audio thread pushes blocks; readers get the most
    recent byte frame (0-255 per bin) as a snapshot.
    """

    def __init__(self, fft_size: int = FFT_SIZE, smoothing: float = ANALYSER_SMOOTHING,
                 min_db: float = ANALYSER_MIN_DB, max_db: float = ANALYSER_MAX_DB):
        self.fft_size = fft_size
        self.bin_count = fft_size // 2
        self.smoothing = smoothing
        self.min_db = min_db
        self.max_db = max_db
        self._window = np.blackman(fft_size)
        self._samples = np.zeros(fft_size, dtype=np.float32)
        self._magnitudes = np.zeros(self.bin_count, dtype=np.float64)
        self._frame = np.zeros(self.bin_count, dtype=np.uint8)

    def push(self, block: np.ndarray):
        mono = block.mean(axis=1) if block.ndim == 2 else block
        samples = np.concatenate((self._samples, mono.astype(np.float32, copy=False)))[-self.fft_size:]
        self._samples = samples

        spectrum = np.abs(np.fft.rfft(samples * self._window))[:self.bin_count] / self.fft_size
        magnitudes = self.smoothing * self._magnitudes + (1.0 - self.smoothing) * spectrum
        self._magnitudes = magnitudes

        with np.errstate(divide='ignore'):
            db = 20.0 * np.log10(magnitudes)
        scaled = 255.0 * (db - self.min_db) / (self.max_db - self.min_db)
        self._frame = np.clip(np.nan_to_num(scaled, neginf=0.0), 0, 255).astype(np.uint8)

    def frequency_frame(self) -> np.ndarray:
        return self._frame.copy()


# ============================================
# LIMITER
# ============================================

def static_gain_db(level_db: np.ndarray, threshold: float = LIMITER_THRESHOLD_DB,
                   knee: float = LIMITER_KNEE_DB, ratio: float = LIMITER_RATIO) -> np.ndarray:
    """Gain (<= 0 dB) of the soft-knee compressor curve for input levels.

    Compression starts at the threshold and reaches the full ratio at
    threshold + knee.
    """
    over = level_db - threshold
    slope = 1.0 / ratio - 1.0
    gain = np.zeros_like(level_db)
    in_knee = (over > 0) & (over < knee)
    gain[in_knee] = slope * over[in_knee] ** 2 / (2.0 * knee)
    above = over >= knee
    gain[above] = slope * (knee / 2.0 + (over[above] - knee))
    return gain


class Limiter:
    """Soft-knee compressor used as a clipping guard (not user-configurable)."""

    def __init__(self, sample_rate: int):
        self.sample_rate = sample_rate
        self.threshold = LIMITER_THRESHOLD_DB
        self.knee = LIMITER_KNEE_DB
        self.ratio = LIMITER_RATIO
        self.attack = LIMITER_ATTACK
        self.release = LIMITER_RELEASE
        self._attack_coeff = _smoothing_coeff(self.attack, sample_rate)
        self._release_coeff = _smoothing_coeff(self.release, sample_rate)
        self._reduction_db = 0.0

    @property
    def reduction_db(self) -> float:
        return self._reduction_db

    def process(self, x: np.ndarray) -> np.ndarray:
        if x.size == 0:
            return x
        peaks = np.max(np.abs(x), axis=1)
        with np.errstate(divide='ignore'):
            level_db = 20.0 * np.log10(np.maximum(peaks, 1e-9))
        desired = static_gain_db(level_db, self.threshold, self.knee, self.ratio)

        attack = self._attack_coeff
        release = self._release_coeff
        current = self._reduction_db
        smoothed = np.empty_like(desired)
        for i in range(desired.shape[0]):
            target = desired[i]
            coeff = attack if target < current else release
            current = coeff * current + (1.0 - coeff) * target
            smoothed[i] = current
        self._reduction_db = float(current)

        gains = np.power(10.0, smoothed / 20.0)
        return (x * gains[:, None]).astype(np.float32, copy=False)


def _smoothing_coeff(seconds: float, sample_rate: int) -> float:
    if seconds <= 0:
        return 0.0
    return math.exp(-1.0 / (seconds * sample_rate))
