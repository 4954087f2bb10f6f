"""
Playback Engine - Dual-channel crossfading signal chain.

Graph (fixed):
    channel gain x2 -> EQ (low-shelf, peaking, high-shelf) -> analyser tap
    -> limiter -> master gain -> output

Time is the engine's sample clock: frames rendered / sample rate. The
output device pulls blocks through render(); tests drive render()
directly with a NullOutput.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np

from .decoder import decode
from .dsp import Equalizer, Analyser, Limiter
from .output import SoundDeviceOutput
from .params import AudioParam
from .waveform import WaveformExtractor
from ..config import (
    SAMPLE_RATE, CHANNELS, BLOCK_SIZE,
    CROSSFADE_DURATION, SMOOTHING_TIME_CONSTANT, DEFAULT_MASTER_VOLUME, EQ_GAIN_RANGE,
    WAVEFORM_BARS,
)
from ..errors import ResourceUnavailableError
from ..models import Song
from ..utils import clamp, db_to_gain, run_async

logger = logging.getLogger(__name__)


@dataclass
class _Source:
    """Decoded audio loaded on a channel. Replaced wholesale on load."""
    resource: str
    samples: np.ndarray
    position: int = 0
    playing: bool = False
    stop_at: Optional[int] = None  # engine frame at which to stop and release
    ending_sent: bool = False

    @property
    def frames(self) -> int:
        return self.samples.shape[0]


class Channel:
    """One of the two interchangeable playback channels."""

    def __init__(self, index: int, sample_rate: int, channels: int = CHANNELS):
        self.index = index
        self.sample_rate = sample_rate
        self.channels = channels
        self.gain = AudioParam(0.0, sample_rate)
        self._source: Optional[_Source] = None
        self._swap_lock = threading.Lock()

    @property
    def source(self) -> Optional[_Source]:
        return self._source

    @property
    def has_audio(self) -> bool:
        return self._source is not None

    @property
    def is_playing(self) -> bool:
        source = self._source
        return source is not None and source.playing

    def load(self, resource: str, samples: np.ndarray) -> _Source:
        source = _Source(resource=resource, samples=samples)
        with self._swap_lock:
            self._source = source
        return source

    def release(self, source: Optional[_Source] = None):
        """Drop the loaded audio (only if it is still source, when given)."""
        with self._swap_lock:
            if source is None or self._source is source:
                self._source = None
                self.gain.set_value(0.0)

    def read(self, frames: int, frame0: int, lead_frames: int = 0):
        """Next block of raw samples, or None when silent.

        Returns (block, event). event is 'ended' when the source ran out
        during this block, 'ending' the first time no more than
        lead_frames remain, otherwise None. The ending window never covers
        more than the second half of a source, and sources no longer than
        lead_frames only report 'ended'.
        """
        source = self._source
        if source is None or not source.playing:
            return None, None

        count = frames
        stop_at = source.stop_at
        if stop_at is not None:
            count = max(0, min(frames, stop_at - frame0))

        start = source.position
        chunk = source.samples[start:start + count]
        source.position = start + chunk.shape[0]

        block = np.zeros((frames, self.channels), dtype=np.float32)
        block[:chunk.shape[0]] = chunk

        if stop_at is not None:
            if frame0 + frames >= stop_at:
                source.playing = False
                self.release(source)
            return block, None
        if source.position >= source.frames:
            source.playing = False
            return block, 'ended'
        lead = min(lead_frames, source.frames // 2)
        if (0 < lead_frames < source.frames and not source.ending_sent
                and source.frames - source.position <= lead):
            source.ending_sent = True
            return block, 'ending'
        return block, None


class PlaybackEngine:
    """
    Owns both channels and the shared processing chain.

    Construct once at application start, close() at shutdown. Control
    methods run on the caller's thread; render() runs on the output's
    realtime thread and only reads automation segments and sources.
    """

    def __init__(self, sample_rate: int = SAMPLE_RATE, block_size: int = BLOCK_SIZE,
                 output=None, decoder: Callable[[str, int], np.ndarray] = decode,
                 crossfade_duration: float = CROSSFADE_DURATION):
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.crossfade_duration = crossfade_duration
        self.use_replay_gain = True

        self._decoder = decoder
        self._output = output if output is not None else SoundDeviceOutput(sample_rate, CHANNELS, block_size)
        self._frame = 0
        self._state = 'suspended'
        self._control_lock = threading.Lock()

        self.channels: List[Channel] = [Channel(i, sample_rate) for i in range(2)]
        self._active = 0
        self._current_song: Optional[Song] = None

        self.equalizer = Equalizer(sample_rate, CHANNELS)
        self.analyser = Analyser()
        self.limiter = Limiter(sample_rate)
        self.master_gain = AudioParam(DEFAULT_MASTER_VOLUME, sample_rate)

        self.waveforms = WaveformExtractor(decoder, sample_rate)

        # Called off the audio thread with the active song: once when the
        # remaining audio fits in the crossfade window, and when it runs out
        self.on_track_ending: Optional[Callable[[Song], None]] = None
        self.on_track_end: Optional[Callable[[Song], None]] = None

    # ============================================
    # LIFECYCLE
    # ============================================

    @property
    def state(self) -> str:
        """'suspended', 'running' or 'closed'."""
        return self._state

    def start(self):
        """Open the output device and start pulling audio."""
        if self._state == 'closed':
            raise RuntimeError('Playback engine is closed')
        if self._state == 'suspended':
            self._output.start(self.render)
            self._state = 'running'
            logger.info('Playback engine running')

    def suspend(self):
        if self._state == 'running':
            self._output.stop()
            self._state = 'suspended'
            logger.info('Playback engine suspended')

    def close(self):
        if self._state == 'closed':
            return
        self._output.close()
        for channel in self.channels:
            channel.release()
        self.waveforms.close()
        self._state = 'closed'
        logger.info('Playback engine closed')

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ============================================
    # CLOCK & ACCESSORS
    # ============================================

    @property
    def current_time(self) -> float:
        return self._frame / self.sample_rate

    @property
    def active_channel(self) -> Channel:
        return self.channels[self._active]

    @property
    def active_channel_index(self) -> int:
        return self._active

    @property
    def current_song(self) -> Optional[Song]:
        return self._current_song

    @property
    def is_playing(self) -> bool:
        return self.active_channel.is_playing

    @property
    def position(self) -> float:
        """Playback position of the active channel in seconds."""
        source = self.active_channel.source
        return source.position / self.sample_rate if source else 0.0

    @property
    def duration(self) -> float:
        source = self.active_channel.source
        return source.frames / self.sample_rate if source else 0.0

    def channel_gains(self) -> List[float]:
        now = self.current_time
        return [channel.gain.value_at(now) for channel in self.channels]

    def target_gain(self, song: Song) -> float:
        """Linear gain from the song's replay gain (1.0 when absent)."""
        if not self.use_replay_gain or song.replay_gain is None:
            return 1.0
        return db_to_gain(song.replay_gain)

    # ============================================
    # TRANSPORT
    # ============================================

    def play(self, song: Song, crossfade: bool = True):
        """Load song on the inactive channel and make it active.

        Raises ResourceUnavailableError if the song cannot be loaded; the
        currently audible channel is left untouched in that case.
        """
        if self._state == 'closed':
            raise RuntimeError('Playback engine is closed')

        try:
            samples = self._decoder(song.url, self.sample_rate)
        except ResourceUnavailableError as e:
            logger.warning(f'Cannot play "{song.title}": {e}')
            raise

        with self._control_lock:
            self.start()
            now = self.current_time
            outgoing = self.channels[self._active]
            incoming_index = 1 - self._active
            incoming = self.channels[incoming_index]
            target = self.target_gain(song)

            # Re-target from the current value if this channel is still fading out
            start_gain = incoming.gain.cancel_and_hold(now) if incoming.has_audio else 0.0
            incoming.gain.set_value(start_gain)
            source = incoming.load(song.url, samples)

            fade = crossfade and outgoing.is_playing and self.crossfade_duration > 0
            if fade:
                end = now + self.crossfade_duration
                outgoing.gain.linear_ramp_to(0.0, now, end)
                incoming.gain.linear_ramp_to(target, now, end)
                old = outgoing.source
                if old is not None:
                    old.stop_at = self._frame_at(end)
            else:
                incoming.gain.set_value(target)
                outgoing.release()

            source.playing = True
            self._active = incoming_index
            self._current_song = song

        logger.info(f'Playing "{song.title}" on channel {incoming_index}'
                    f'{" (crossfade)" if fade else ""}, gain {target:.3f}')

    def pause(self):
        source = self.active_channel.source
        if source is not None:
            source.playing = False

    def resume(self):
        source = self.active_channel.source
        if source is not None and source.position < source.frames:
            self.start()
            source.playing = True

    def seek(self, seconds: float):
        source = self.active_channel.source
        if source is None:
            return
        frame = int(round(max(0.0, seconds) * self.sample_rate))
        source.position = min(frame, source.frames)
        source.ending_sent = False

    def set_crossfade(self, seconds: float):
        self.crossfade_duration = max(0.0, float(seconds))

    def set_replay_gain_enabled(self, enabled: bool):
        self.use_replay_gain = bool(enabled)

    # ============================================
    # PROCESSING CONTROLS
    # ============================================

    def set_equalizer(self, bass: float, mid: float, treble: float):
        """Band gains in dB, smoothed to avoid audible stepping."""
        lo, hi = EQ_GAIN_RANGE
        gains = [clamp(float(g), lo, hi) for g in (bass, mid, treble)]
        self.equalizer.set_gains(gains, self.current_time)

    def set_master_volume(self, level: float):
        self.master_gain.set_target(max(0.0, float(level)), self.current_time, SMOOTHING_TIME_CONSTANT)

    def get_frequency_frame(self) -> np.ndarray:
        """Latest analyser frame: uint8 magnitude per bin (0-255)."""
        return self.analyser.frequency_frame()

    def get_waveform_peaks(self, resource: str, bar_count: int = WAVEFORM_BARS):
        """Future resolving to bar_count peaks (see WaveformExtractor)."""
        return self.waveforms.get_peaks(resource, bar_count)

    # ============================================
    # RENDERING (realtime thread)
    # ============================================

    def _frame_at(self, t: float) -> int:
        return int(round(t * self.sample_rate))

    def render(self, frames: int) -> np.ndarray:
        """Produce the next block of output, shaped (frames, channels)."""
        frame0 = self._frame
        t0 = frame0 / self.sample_rate
        mix = np.zeros((frames, CHANNELS), dtype=np.float32)

        lead = int(self.crossfade_duration * self.sample_rate)
        event = None
        for index, channel in enumerate(self.channels):
            block, channel_event = channel.read(frames, frame0, lead)
            if block is None:
                continue
            mix += block * channel.gain.values(t0, frames)[:, None].astype(np.float32)
            if channel_event and index == self._active:
                event = channel_event

        mix = self.equalizer.process(mix, t0)
        self.analyser.push(mix)
        mix = self.limiter.process(mix)
        mix = mix * self.master_gain.values(t0, frames)[:, None].astype(np.float32)
        np.clip(mix, -1.0, 1.0, out=mix)

        self._frame = frame0 + frames

        song = self._current_song
        if event is not None and song is not None:
            callback = self.on_track_end if event == 'ended' else self.on_track_ending
            if callback is not None:
                run_async(callback, song)
        return mix
