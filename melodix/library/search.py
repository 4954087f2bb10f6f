"""
Search Engine - Offline weighted search and recommendations.

Both entry points score every song once, sort by score (stable, so ties
keep library order) and derive all result groups from that single list.
"""
import re
from typing import List, Optional, Tuple

from ..models import Song, SearchResults
from ..config import (
    SIMILAR_LIMIT, GROUP_LIMIT, RECENT_LIMIT, RECENT_EMPTY_LIMIT,
    RECOMMEND_LIMIT, YEAR_PROXIMITY,
)

PUNCTUATION = re.compile(r'[^\w\s]')

# Query weights (tiers within a field are exclusive, fields stack)
TITLE_EXACT = 100
TITLE_PREFIX = 80
TITLE_CONTAINS = 60
ARTIST_EXACT = 70
ARTIST_CONTAINS = 40
ALBUM_CONTAINS = 30
GENRE_CONTAINS = 20

# Similarity weights
SAME_ALBUM = 100
SAME_ARTIST = 80
SAME_GENRE = 60
NEAR_YEAR = 40


def normalize(text: Optional[str]) -> str:
    """Lowercase, trim and drop punctuation."""
    if not text:
        return ''
    return PUNCTUATION.sub('', text.lower().strip())


def score_query(song: Song, query: str) -> int:
    """Score a song against an already normalized query."""
    title = normalize(song.title)
    artist = normalize(song.artist)
    score = 0

    if title == query:
        score += TITLE_EXACT
    elif title.startswith(query):
        score += TITLE_PREFIX
    elif query in title:
        score += TITLE_CONTAINS

    if artist == query:
        score += ARTIST_EXACT
    elif query in artist:
        score += ARTIST_CONTAINS

    if query in normalize(song.album):
        score += ALBUM_CONTAINS
    if query in normalize(song.genre):
        score += GENRE_CONTAINS
    return score


def score_similarity(song: Song, reference: Song) -> int:
    """Score a song by metadata overlap with a reference song."""
    score = 0
    if song.album == reference.album:
        score += SAME_ALBUM
    if song.artist == reference.artist:
        score += SAME_ARTIST
    if song.genre == reference.genre:
        score += SAME_GENRE
    if abs(song.year - reference.year) <= YEAR_PROXIMITY:
        score += NEAR_YEAR
    return score


def _recently_added(songs: List[Song], limit: int) -> List[Song]:
    return sorted(songs, key=lambda s: s.date_added, reverse=True)[:limit]


def _ranked(scored: List[Tuple[Song, int]]) -> List[Song]:
    # sorted() is stable: equal scores keep input order
    return [song for song, _ in sorted(scored, key=lambda pair: pair[1], reverse=True)]


class SearchEngine:
    """Ranks songs for a text query or for "more like this"."""

    @staticmethod
    def empty_state(songs: List[Song]) -> SearchResults:
        return SearchResults(recently_added=_recently_added(songs, RECENT_EMPTY_LIMIT))

    @classmethod
    def rank(cls, songs: List[Song], query: str) -> List[Tuple[Song, int]]:
        """(song, score) pairs with score > 0, best first."""
        q = normalize(query)
        if not q:
            return []
        scored = [(song, score_query(song, q)) for song in songs]
        scored = [pair for pair in scored if pair[1] > 0]
        return sorted(scored, key=lambda pair: pair[1], reverse=True)

    @classmethod
    def search(cls, songs: List[Song], query: str) -> SearchResults:
        if not query or not query.strip():
            return cls.empty_state(songs)

        matches = [song for song, _ in cls.rank(songs, query)]
        top = matches[0] if matches else None
        if top is None:
            return SearchResults(recently_added=_recently_added(songs, RECENT_LIMIT))

        others = [s for s in matches if s.id != top.id]
        return SearchResults(
            top_result=top,
            similar_tracks=matches[1:1 + SIMILAR_LIMIT],
            from_same_artist=[s for s in others if s.artist == top.artist][:GROUP_LIMIT],
            from_same_genre=[s for s in others if s.genre == top.genre][:GROUP_LIMIT],
            recently_added=_recently_added(songs, RECENT_LIMIT),
        )

    @classmethod
    def recommend(cls, songs: List[Song], reference: Optional[Song]) -> SearchResults:
        if reference is None:
            return cls.empty_state(songs)

        recommended = _ranked([
            (song, score_similarity(song, reference))
            for song in songs
            if song.id != reference.id
        ])
        return SearchResults(
            similar_tracks=recommended[:RECOMMEND_LIMIT],
            from_same_artist=[s for s in recommended if s.artist == reference.artist][:GROUP_LIMIT],
            from_same_genre=[s for s in recommended if s.genre == reference.genre][:GROUP_LIMIT],
            recently_added=_recently_added(songs, RECENT_LIMIT),
        )
