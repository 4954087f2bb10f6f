"""
Melodix Audio - Playback engine and its signal processing stages.
"""
from .engine import PlaybackEngine
from .output import NullOutput, SoundDeviceOutput
from .params import AudioParam
from .waveform import WaveformExtractor

__all__ = ['PlaybackEngine', 'NullOutput', 'SoundDeviceOutput', 'AudioParam', 'WaveformExtractor']
