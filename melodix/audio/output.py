"""
Audio Output - Realtime device sinks that pull rendered blocks.
"""
import logging
from typing import Callable, Optional

import numpy as np

from ..config import SAMPLE_RATE, CHANNELS, BLOCK_SIZE

logger = logging.getLogger(__name__)

Render = Callable[[int], np.ndarray]


class NullOutput:
    """Output that never pulls audio. Used headless and in tests."""

    def __init__(self):
        self.active = False
        self.closed = False

    def start(self, render: Render):
        self.active = True

    def stop(self):
        self.active = False

    def close(self):
        self.active = False
        self.closed = True


class SoundDeviceOutput:
    """PortAudio output stream calling the engine's render from its callback thread."""

    def __init__(self, sample_rate: int = SAMPLE_RATE, channels: int = CHANNELS,
                 block_size: int = BLOCK_SIZE, device: Optional[str] = None):
        self.sample_rate = sample_rate
        self.channels = channels
        self.block_size = block_size
        self.device = device
        self._stream = None
        self._render: Optional[Render] = None

    @property
    def active(self) -> bool:
        return self._stream is not None and self._stream.active

    def start(self, render: Render):
        # PortAudio is loaded on first use so headless imports never need it
        import sounddevice as sd

        self._render = render
        if self._stream is None:
            self._stream = sd.OutputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                blocksize=self.block_size,
                dtype='float32',
                device=self.device,
                callback=self._callback,
            )
            logger.info(f'Audio output: {self.sample_rate} Hz, {self.channels} ch, '
                        f'block {self.block_size}')
        self._stream.start()

    def _callback(self, outdata, frames, time_info, status):
        if status:
            logger.debug(f'Audio callback status: {status}')
        try:
            outdata[:] = self._render(frames)
        except Exception as e:
            logger.error(f'Render failed: {e}', exc_info=True)
            outdata.fill(0)

    def stop(self):
        if self._stream is not None:
            self._stream.stop()

    def close(self):
        if self._stream is not None:
            self._stream.close()
            self._stream = None
