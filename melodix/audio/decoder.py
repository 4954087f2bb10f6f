"""
Audio Decoder - Resource locator to float32 PCM via pydub/ffmpeg.
"""
import logging
from io import BytesIO

import numpy as np
import requests
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from ..config import SAMPLE_RATE, CHANNELS
from ..errors import ResourceUnavailableError, DecodeError

logger = logging.getLogger(__name__)


def _open_source(resource: str):
    """Local paths are passed through, http(s) resources are downloaded."""
    if resource.startswith(('http://', 'https://')):
        try:
            response = requests.get(resource, timeout=30)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ResourceUnavailableError(resource, str(e)) from e
        return BytesIO(response.content)
    return resource


def decode(resource: str, sample_rate: int = SAMPLE_RATE, channels: int = CHANNELS) -> np.ndarray:
    """Decode a whole resource into a (frames, channels) float32 array in [-1, 1].

    Raises:
        ResourceUnavailableError: the resource cannot be opened
        DecodeError: the resource could not be decoded
    """
    if not resource:
        raise ResourceUnavailableError('<empty>', 'no resource locator')

    source = _open_source(resource)
    try:
        segment = AudioSegment.from_file(source)
    except CouldntDecodeError as e:
        raise DecodeError(resource, str(e).splitlines()[0] if str(e) else 'decode failed') from e
    except (FileNotFoundError, IsADirectoryError, PermissionError) as e:
        raise ResourceUnavailableError(resource, e.__class__.__name__) from e
    except (OSError, ValueError, IndexError) as e:
        raise DecodeError(resource, str(e)) from e

    segment = segment.set_frame_rate(sample_rate).set_channels(channels).set_sample_width(2)
    samples = np.array(segment.get_array_of_samples(), dtype=np.float32)
    samples = samples.reshape(-1, channels) / 32768.0
    logger.debug(f'Decoded {resource}: {samples.shape[0] / sample_rate:.1f}s')
    return samples


def tone(resource: str, sample_rate: int = SAMPLE_RATE, channels: int = CHANNELS,
         seconds: float = 30.0) -> np.ndarray:
    """Mock-mode decoder: a quiet sine whose pitch depends on the resource."""
    frequency = 220.0 + (sum(resource.encode('utf-8')) % 24) * 20.0
    t = np.arange(int(seconds * sample_rate), dtype=np.float32) / sample_rate
    mono = (0.2 * np.sin(2.0 * np.pi * frequency * t)).astype(np.float32)
    return np.repeat(mono[:, None], channels, axis=1)
