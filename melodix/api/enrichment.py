"""
Enrichment Service - Best-effort lyrics, metadata and cover lookups.

Nothing here is allowed to break playback: every network or decode
failure is logged and turned into an empty result.
"""
import logging
from io import BytesIO
from typing import Optional, Dict

import requests
from PIL import Image, UnidentifiedImageError

from ..config import ENRICHMENT_URL, ENRICHMENT_TIMEOUT, ENRICHMENT_USER_AGENT, COVER_SIZE
from ..errors import MelodixError
from ..models import Song

logger = logging.getLogger(__name__)

# Remote record fields that may fill empty catalog tags
METADATA_FIELDS = {
    'albumName': 'album',
    'trackName': 'title',
    'artistName': 'artist',
}


class EnrichmentService:
    """Interface for enrichment backends."""

    def fetch_lyrics(self, song: Song) -> Optional[str]:
        raise NotImplementedError

    def fetch_metadata(self, song: Song) -> dict:
        raise NotImplementedError

    def fetch_cover(self, song: Song) -> Optional[Image.Image]:
        raise NotImplementedError


class NullEnrichmentService(EnrichmentService):
    """Offline stand-in: never finds anything."""

    def fetch_lyrics(self, song: Song) -> Optional[str]:
        return None

    def fetch_metadata(self, song: Song) -> dict:
        return {}

    def fetch_cover(self, song: Song) -> Optional[Image.Image]:
        return None


class LrclibEnrichmentService(EnrichmentService):
    """LRCLIB-compatible HTTP API client (GET /api/get)."""

    def __init__(self, base_url: str = ENRICHMENT_URL, timeout: float = ENRICHMENT_TIMEOUT):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers['User-Agent'] = ENRICHMENT_USER_AGENT
        self._records: Dict[str, Optional[dict]] = {}

    def _lookup(self, song: Song) -> Optional[dict]:
        """Fetch (once per song id) the best-matching remote record."""
        if song.id in self._records:
            return self._records[song.id]

        params = {'track_name': song.title, 'artist_name': song.artist}
        if song.album:
            params['album_name'] = song.album
        if song.duration and song.duration > 0:
            params['duration'] = int(round(song.duration))

        record = None
        try:
            resp = self.session.get(f'{self.base_url}/api/get', params=params, timeout=self.timeout)
            if resp.status_code == 404:
                logger.debug(f'No enrichment record for "{song.title}"')
            elif resp.ok:
                data = resp.json()
                record = data if isinstance(data, dict) else None
            else:
                logger.warning(f'Enrichment lookup failed: {resp.status_code}')
        except requests.RequestException as e:
            logger.debug(f'Enrichment request failed for "{song.title}": {e}')
            return None
        except ValueError as e:
            logger.warning(f'Enrichment response was not JSON: {e}')
            return None

        self._records[song.id] = record
        return record

    def fetch_lyrics(self, song: Song) -> Optional[str]:
        record = self._lookup(song)
        if not record:
            return None
        text = (record.get('syncedLyrics') or record.get('plainLyrics') or '').strip()
        return text or None

    def fetch_metadata(self, song: Song) -> dict:
        record = self._lookup(song)
        if not record:
            return {}
        return {
            tag: record[field]
            for field, tag in METADATA_FIELDS.items()
            if record.get(field)
        }

    def fetch_cover(self, song: Song) -> Optional[Image.Image]:
        """Download the song's cover and square it to COVER_SIZE (RGB)."""
        if not song.cover_url or not song.cover_url.startswith(('http://', 'https://')):
            return None
        try:
            resp = self.session.get(song.cover_url, timeout=self.timeout)
            resp.raise_for_status()
            img = Image.open(BytesIO(resp.content)).convert('RGB')
            return img.resize((COVER_SIZE, COVER_SIZE), Image.Resampling.LANCZOS)
        except requests.RequestException as e:
            logger.debug(f'Error downloading cover: {e}')
            return None
        except (UnidentifiedImageError, OSError) as e:
            logger.warning(f'Unreadable cover for "{song.title}": {e}')
            return None


def enrich_song(song: Song, service: EnrichmentService, library=None) -> dict:
    """Fill missing lyrics and empty tags for song. Never raises.

    Returns {'lyrics': bool, 'tags': [changed tag names], 'cover': Image or None}.
    """
    result = {'lyrics': False, 'tags': [], 'cover': None}

    try:
        if not song.has_lyrics:
            text = service.fetch_lyrics(song)
            if text:
                if library is not None:
                    library.set_lyrics(song.id, text)
                song.lrc_content = text
                result['lyrics'] = True

        metadata = service.fetch_metadata(song)
        changes = {tag: value for tag, value in metadata.items() if not getattr(song, tag, None)}
        if changes:
            if library is not None and library.get(song.id) is not None:
                song = library.commit_tags(song.id, changes)
            else:
                for tag, value in changes.items():
                    setattr(song, tag, value)
            result['tags'] = sorted(changes)

        result['cover'] = service.fetch_cover(song)
    except (MelodixError, KeyError, ValueError) as e:
        logger.warning(f'Enrichment for "{song.title}" incomplete: {e}')
    except Exception as e:
        logger.error(f'Unexpected enrichment error for "{song.title}": {e}', exc_info=True)

    return result
