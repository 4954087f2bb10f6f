"""
Audio Params - Sample-clock automation for gains.

A param holds exactly one immutable automation segment. Control calls
build a new segment and swap it in with a single assignment, so the
realtime thread always reads a consistent segment without locking.
"""
import math
from dataclasses import dataclass
from typing import Union

import numpy as np


@dataclass(frozen=True)
class Constant:
    value: float

    def at(self, t):
        return np.full(np.shape(t), self.value, dtype=np.float64) if np.ndim(t) else self.value

    @property
    def target(self) -> float:
        return self.value


@dataclass(frozen=True)
class LinearRamp:
    start_time: float
    start_value: float
    end_time: float
    end_value: float

    def at(self, t):
        span = self.end_time - self.start_time
        progress = np.clip((np.asarray(t, dtype=np.float64) - self.start_time) / span, 0.0, 1.0)
        values = self.start_value + (self.end_value - self.start_value) * progress
        return values if np.ndim(t) else float(values)

    @property
    def target(self) -> float:
        return self.end_value


@dataclass(frozen=True)
class TargetApproach:
    """Exponential approach toward a target with a time constant."""
    start_time: float
    start_value: float
    target_value: float
    time_constant: float

    def at(self, t):
        elapsed = np.maximum(np.asarray(t, dtype=np.float64) - self.start_time, 0.0)
        decay = np.exp(-elapsed / self.time_constant)
        values = self.target_value + (self.start_value - self.target_value) * decay
        return values if np.ndim(t) else float(values)

    @property
    def target(self) -> float:
        return self.target_value


Segment = Union[Constant, LinearRamp, TargetApproach]


class AudioParam:
    """A float value driven by the engine's sample clock (seconds)."""

    def __init__(self, value: float, sample_rate: int):
        self.sample_rate = sample_rate
        self._segment: Segment = Constant(float(value))

    @property
    def target(self) -> float:
        """Value the param settles at once automation completes."""
        return self._segment.target

    def value_at(self, t: float) -> float:
        return float(self._segment.at(t))

    def values(self, start_time: float, frames: int) -> np.ndarray:
        """Per-sample values for a block starting at start_time."""
        segment = self._segment
        if isinstance(segment, Constant):
            return np.full(frames, segment.value, dtype=np.float64)
        t = start_time + np.arange(frames, dtype=np.float64) / self.sample_rate
        return segment.at(t)

    def set_value(self, value: float):
        """Jump immediately (no automation)."""
        self._segment = Constant(float(value))

    def cancel_and_hold(self, t: float) -> float:
        """Freeze at the exact automated value at time t."""
        value = self.value_at(t)
        self._segment = Constant(value)
        return value

    def linear_ramp_to(self, value: float, start_time: float, end_time: float):
        """Ramp from the current value at start_time to value at end_time."""
        start_value = self.value_at(start_time)
        if end_time <= start_time:
            self._segment = Constant(float(value))
            return
        self._segment = LinearRamp(start_time, start_value, end_time, float(value))

    def set_target(self, value: float, start_time: float, time_constant: float):
        """Approach value exponentially from the current value."""
        start_value = self.value_at(start_time)
        if time_constant <= 0 or math.isclose(start_value, value):
            self._segment = Constant(float(value))
            return
        self._segment = TargetApproach(start_time, start_value, float(value), time_constant)
