"""
Library Store - Song catalog persistence.

Handles:
- Loading/saving catalog songs
- Play count and favorite updates proposed by the player
- Lyric text updates from enrichment
- Tag commits (metadata edits applied to the stored record)
"""
import time
import logging
import threading
from pathlib import Path
from typing import Optional, List, Dict

from ..models import Song
from ..storage import read_json, write_json_atomic

logger = logging.getLogger(__name__)

# Tag name -> (Song attribute, coercion)
EDITABLE_TAGS = {
    'title': ('title', str),
    'artist': ('artist', str),
    'album': ('album', str),
    'genre': ('genre', str),
    'year': ('year', int),
    'replayGain': ('replay_gain', float),
    'coverUrl': ('cover_url', str),
}


class LibraryStore:
    """
    Catalog of songs backed by catalog.json ({"songs": [...]}).

    The playback core only reads songs; mutations go through the
    record_play / set_favorite / set_lyrics / commit_tags methods.
    """

    def __init__(self, catalog_path: Path, mock_mode: bool = False):
        self.catalog_path = Path(catalog_path)
        self.mock_mode = mock_mode

        # Thread lock for catalog file operations
        self._catalog_lock = threading.Lock()

        self._songs: List[Song] = []
        self._by_id: Dict[str, Song] = {}

    # ============================================
    # LOADING & SAVING
    # ============================================

    def load(self) -> List[Song]:
        """Load songs from disk."""
        if self.mock_mode:
            self._set_songs(self._load_mock_data())
            return self._songs

        logger.info(f'Loading catalog from {self.catalog_path}')
        with self._catalog_lock:
            data = read_json(self.catalog_path, None)

        if data is None:
            logger.warning(f'Catalog not found at {self.catalog_path}')
            self._set_songs([])
            return self._songs

        records = data.get('songs', []) if isinstance(data, dict) else []
        songs = []
        for record in records:
            if not isinstance(record, dict) or not record.get('id'):
                continue
            try:
                songs.append(Song.from_dict(record))
            except (TypeError, ValueError) as e:
                logger.warning(f'Skipping malformed song {record.get("id")}: {e}')
        self._set_songs(songs)
        logger.info(f'Loaded {len(self._songs)} songs')
        return self._songs

    @property
    def songs(self) -> List[Song]:
        """Get cached songs."""
        return self._songs

    def get(self, song_id: str) -> Optional[Song]:
        return self._by_id.get(song_id)

    def _set_songs(self, songs: List[Song]):
        self._songs = songs
        self._by_id = {song.id: song for song in songs}

    def save(self):
        """Write all cached songs back to disk."""
        if self.mock_mode:
            return
        with self._catalog_lock:
            write_json_atomic(self.catalog_path, {'songs': [s.to_dict() for s in self._songs]})

    def add(self, song: Song) -> bool:
        """Add a song. Returns False for a duplicate id."""
        if song.id in self._by_id:
            logger.warning(f'Song already in catalog: {song.title}')
            return False
        if not song.date_added:
            song.date_added = int(time.time() * 1000)
        self._songs.append(song)
        self._by_id[song.id] = song
        self.save()
        logger.info(f'Saved to catalog: {song.title}')
        return True

    def _load_mock_data(self) -> List[Song]:
        """Load mock data for testing without a catalog."""
        return [
            Song(id='1', title='Aurora', artist='Northern Lights', album='Polar',
                 genre='Ambient', year=2019, duration=241.0, date_added=5),
            Song(id='2', title='Come Together', artist='The Beatles', album='Abbey Road',
                 genre='Rock', year=1969, duration=259.0, date_added=4),
            Song(id='3', title='Time', artist='Pink Floyd', album='Dark Side of the Moon',
                 genre='Rock', year=1973, duration=413.0, date_added=3),
            Song(id='4', title='Dreams', artist='Fleetwood Mac', album='Rumours',
                 genre='Rock', year=1977, duration=257.0, date_added=2),
            Song(id='5', title='Late Night', artist='Chillhop Cafe', album='Night Study',
                 genre='Lofi', year=2021, duration=168.0, date_added=1,
                 lrc_content='[00:05.00]Rain on the window\n[00:12.50]Coffee gone cold'),
        ]

    # ============================================
    # MUTATIONS PROPOSED BY THE CORE
    # ============================================

    def record_play(self, song_id: str) -> bool:
        """Increment play count and stamp lastPlayed (ms since epoch)."""
        song = self.get(song_id)
        if song is None:
            logger.debug(f'record_play: unknown song {song_id}')
            return False
        song.play_count += 1
        song.last_played = int(time.time() * 1000)
        self.save()
        logger.debug(f'Play count for "{song.title}": {song.play_count}')
        return True

    def set_favorite(self, song_id: str, favorite: bool) -> bool:
        song = self.get(song_id)
        if song is None:
            return False
        song.is_favorite = bool(favorite)
        self.save()
        return True

    def set_lyrics(self, song_id: str, lrc_content: str) -> bool:
        song = self.get(song_id)
        if song is None:
            return False
        song.lrc_content = lrc_content or ''
        self.save()
        logger.info(f'Updated lyrics for "{song.title}"')
        return True

    def commit_tags(self, song_id: str, changes: dict) -> Song:
        """Apply edited tags to the stored record and persist.

        Only known tag fields are accepted; audio files are never touched.
        The stored Song is updated in place, so every holder sees the edit.
        """
        song = self.get(song_id)
        if song is None:
            raise KeyError(song_id)

        updates = {}
        for key, value in changes.items():
            if key not in EDITABLE_TAGS:
                raise ValueError(f'Tag is not editable: {key}')
            attribute, coerce = EDITABLE_TAGS[key]
            updates[attribute] = coerce(value) if value is not None else None

        for attribute, value in updates.items():
            setattr(song, attribute, value)
        self.save()
        logger.info(f'Committed tags for "{song.title}": {sorted(changes)}')
        return song
