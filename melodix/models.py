"""
Melodix Data Models - Core data structures.
"""
from dataclasses import dataclass, field, replace
from typing import Optional, List, Literal

RepeatMode = Literal['off', 'one', 'all']
REPEAT_MODES = ('off', 'one', 'all')


@dataclass
class Song:
    """A catalog entry. Owned by the library store, read by the core."""
    id: str
    title: str = ''
    artist: str = ''
    album: str = ''
    genre: str = ''
    year: int = 0
    duration: float = 0.0
    url: str = ''
    replay_gain: Optional[float] = None
    play_count: int = 0
    is_favorite: bool = False
    lrc_content: str = ''
    date_added: int = 0
    last_played: int = 0
    cover_url: Optional[str] = None

    @property
    def has_lyrics(self) -> bool:
        return bool(self.lrc_content and self.lrc_content.strip())

    @classmethod
    def from_dict(cls, data: dict) -> 'Song':
        """Build a Song from a stored record (camelCase keys)."""
        replay_gain = data.get('replayGain')
        return cls(
            id=str(data.get('id', '')),
            title=data.get('title') or '',
            artist=data.get('artist') or '',
            album=data.get('album') or '',
            genre=data.get('genre') or '',
            year=int(data.get('year') or 0),
            duration=float(data.get('duration') or 0.0),
            url=data.get('url') or '',
            replay_gain=float(replay_gain) if replay_gain is not None else None,
            play_count=int(data.get('playCount') or 0),
            is_favorite=bool(data.get('isFavorite', False)),
            lrc_content=data.get('lrcContent') or '',
            date_added=int(data.get('dateAdded') or 0),
            last_played=int(data.get('lastPlayed') or 0),
            cover_url=data.get('coverUrl'),
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'title': self.title,
            'artist': self.artist,
            'album': self.album,
            'genre': self.genre,
            'year': self.year,
            'duration': self.duration,
            'url': self.url,
            'replayGain': self.replay_gain,
            'playCount': self.play_count,
            'isFavorite': self.is_favorite,
            'lrcContent': self.lrc_content,
            'dateAdded': self.date_added,
            'lastPlayed': self.last_played,
            'coverUrl': self.cover_url,
        }


@dataclass
class QueueState:
    """
    Ordered playback session.

    current_index is -1 for an empty session. An index outside the item
    range is representable (caller contract) and means "no current song".
    """
    items: List[Song] = field(default_factory=list)
    current_index: int = -1
    shuffled: bool = False
    repeat_mode: RepeatMode = 'all'

    @property
    def current_song(self) -> Optional[Song]:
        if 0 <= self.current_index < len(self.items):
            return self.items[self.current_index]
        return None

    def snapshot(self) -> 'QueueState':
        """Independent copy for listeners (songs are shared, the list is not)."""
        return replace(self, items=list(self.items))

    def to_blob(self) -> dict:
        """Serialize to identifiers + cursor + flags."""
        return {
            'items': [song.id for song in self.items],
            'currentIndex': self.current_index,
            'shuffled': self.shuffled,
            'repeatMode': self.repeat_mode,
        }


@dataclass(frozen=True)
class LyricLine:
    """One timed lyric line."""
    time: float
    text: str


@dataclass
class SearchResults:
    """Grouped search / recommendation output."""
    top_result: Optional[Song] = None
    similar_tracks: List[Song] = field(default_factory=list)
    from_same_artist: List[Song] = field(default_factory=list)
    from_same_genre: List[Song] = field(default_factory=list)
    recently_added: List[Song] = field(default_factory=list)
