"""
Pytest configuration and shared fixtures for Melodix tests.
"""
import json
import pytest
import numpy as np
from pathlib import Path
from tempfile import TemporaryDirectory

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from melodix.errors import ResourceUnavailableError
from melodix.models import Song

SAMPLE_RATE = 8000


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that's cleaned up after each test."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def catalog_path(temp_dir):
    """Provide path for a temporary catalog.json file."""
    return temp_dir / 'catalog.json'


@pytest.fixture
def sample_songs():
    """A small library with overlapping artists, genres and years."""
    return [
        Song(id='1', title='Midnight City', artist='M83', album='Hurry Up',
             genre='Electronic', year=2011, duration=244.0, play_count=12,
             date_added=100, url='mem://1'),
        Song(id='2', title='Wait', artist='M83', album='Hurry Up',
             genre='Electronic', year=2011, duration=341.0, play_count=3,
             date_added=200, url='mem://2'),
        Song(id='3', title='Midnight', artist='Coldplay', album='Ghost Stories',
             genre='Alternative', year=2014, duration=294.0, is_favorite=True,
             date_added=300, url='mem://3'),
        Song(id='4', title='Strobe', artist='deadmau5', album='For Lack',
             genre='Electronic', year=2009, duration=637.0, play_count=40,
             date_added=400, url='mem://4', replay_gain=-6.0),
        Song(id='5', title='Yellow', artist='Coldplay', album='Parachutes',
             genre='Alternative', year=2000, duration=269.0,
             date_added=500, url='mem://5',
             lrc_content='[00:01.00]Look at the stars\n[00:05.50]Look how they shine'),
    ]


@pytest.fixture
def sample_catalog_data(sample_songs):
    """Catalog file contents for sample_songs."""
    return {'songs': [song.to_dict() for song in sample_songs]}


@pytest.fixture
def catalog_with_file(catalog_path, sample_catalog_data):
    """Create a catalog file with sample data."""
    catalog_path.write_text(json.dumps(sample_catalog_data, indent=2))
    return catalog_path


class FakeDecoder:
    """Decoder returning constant-level audio of a fixed length per resource.

    Resources listed in `missing` raise ResourceUnavailableError.
    """

    def __init__(self, seconds=2.0, level=0.5, missing=()):
        self.seconds = seconds
        self.level = level
        self.missing = set(missing)
        self.calls = []

    def __call__(self, resource, sample_rate):
        self.calls.append(resource)
        if resource in self.missing or not resource:
            raise ResourceUnavailableError(resource or '<empty>', 'not found')
        frames = int(self.seconds * sample_rate)
        return np.full((frames, 2), self.level, dtype=np.float32)


@pytest.fixture
def fake_decoder():
    return FakeDecoder()
