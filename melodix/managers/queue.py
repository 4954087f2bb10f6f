"""
Queue Manager - The ordered playback session.

Owns the current list and cursor. Every mutation is persisted
synchronously and then pushed to subscribers, in mutation order.
Mutate, persist and notify run under one re-entrant lock, so
mutations from other threads (engine callbacks) are serialized.
"""
import json
import logging
import threading
from typing import Callable, List, Optional

from ..config import SESSION_KEY
from ..models import Song, QueueState, REPEAT_MODES

logger = logging.getLogger(__name__)

Listener = Callable[[QueueState], None]


class QueueManager:
    """Current play session, priority adding and persistence."""

    def __init__(self, store, lookup: Optional[Callable[[str], Optional[Song]]] = None,
                 key: str = SESSION_KEY):
        """
        Args:
            store: Blob store with read(key) / write(key, blob)
            lookup: Resolves a song id to a Song when restoring a session
            key: Storage key for the session blob
        """
        self._store = store
        self._lookup = lookup
        self._key = key
        self._state = QueueState()
        self._listeners: List[Listener] = []
        # Held across mutate + persist + notify; listeners may mutate again
        self.lock = threading.RLock()

    # ============================================
    # PERSISTENCE
    # ============================================

    def load(self) -> QueueState:
        """Restore the session from storage (call once at startup)."""
        blob = self._store.read(self._key)
        if not blob:
            return self._state.snapshot()

        try:
            data = json.loads(blob)
            ids = [str(i) for i in data.get('items', [])]
            index = int(data.get('currentIndex', -1))
            shuffled = bool(data.get('shuffled', False))
            repeat_mode = data.get('repeatMode', 'all')
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError) as e:
            logger.warning(f'Ignoring corrupt queue session: {e}')
            return self._state.snapshot()

        if repeat_mode == 'none':
            repeat_mode = 'off'
        if repeat_mode not in REPEAT_MODES:
            repeat_mode = 'all'

        items = []
        for position, song_id in enumerate(ids):
            song = self._lookup(song_id) if self._lookup else Song(id=song_id)
            if song is None:
                logger.debug(f'Dropping missing song from session: {song_id}')
                if position < index:
                    index -= 1
                continue
            items.append(song)

        if not items:
            index = -1
        else:
            index = max(0, min(index, len(items) - 1))

        with self.lock:
            self._state = QueueState(items=items, current_index=index,
                                     shuffled=shuffled, repeat_mode=repeat_mode)
            logger.info(f'Restored queue: {len(items)} songs, cursor {index}')
            return self._state.snapshot()

    def _commit(self):
        """Persist, then notify listeners with a snapshot. Caller holds the lock."""
        self._store.write(self._key, json.dumps(self._state.to_blob()))
        for listener in list(self._listeners):
            listener(self._state.snapshot())

    # ============================================
    # SUBSCRIPTIONS
    # ============================================

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        """Register a listener. It immediately receives the current state."""
        with self.lock:
            self._listeners.append(callback)
            callback(self._state.snapshot())

        def unsubscribe():
            with self.lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    # ============================================
    # READS
    # ============================================

    @property
    def state(self) -> QueueState:
        with self.lock:
            return self._state.snapshot()

    @property
    def current_index(self) -> int:
        return self._state.current_index

    def __len__(self) -> int:
        return len(self._state.items)

    def get_current_song(self) -> Optional[Song]:
        with self.lock:
            return self._state.current_song

    # ============================================
    # MUTATIONS
    # ============================================

    def set_queue(self, songs: List[Song], start_index: int = 0):
        """Replace the session. start_index is not clamped."""
        with self.lock:
            self._state.items = list(songs)
            self._state.current_index = start_index
            self._commit()

    def add_next(self, song: Song):
        """Insert right after the cursor."""
        with self.lock:
            self._state.items.insert(self._state.current_index + 1, song)
            self._commit()

    def add_to_end(self, song: Song):
        with self.lock:
            self._state.items.append(song)
            self._commit()

    def next(self) -> Optional[Song]:
        """Advance the cursor (wraps around)."""
        with self.lock:
            items = self._state.items
            if not items:
                return None
            self._state.current_index = (self._state.current_index + 1) % len(items)
            self._commit()
            return items[self._state.current_index]

    def prev(self) -> Optional[Song]:
        """Move the cursor back (wraps around)."""
        with self.lock:
            items = self._state.items
            if not items:
                return None
            self._state.current_index = (self._state.current_index - 1) % len(items)
            self._commit()
            return items[self._state.current_index]

    def jump_to(self, index: int):
        with self.lock:
            if 0 <= index < len(self._state.items):
                self._state.current_index = index
                self._commit()

    def reorder(self, new_items: List[Song]) -> List[Song]:
        """Replace the order. The cursor is not remapped."""
        with self.lock:
            self._state.items = list(new_items)
            self._commit()
            return list(self._state.items)

    def remove_from_queue(self, index: int):
        """Remove an entry, keeping the cursor on what plays next."""
        with self.lock:
            items = self._state.items
            if not 0 <= index < len(items):
                return
            del items[index]
            if index <= self._state.current_index:
                self._state.current_index = max(0, self._state.current_index - 1)
            if not items:
                self._state.current_index = -1
            self._commit()

    def clear(self):
        with self.lock:
            self._state.items = []
            self._state.current_index = -1
            self._commit()

    def set_shuffle(self, shuffled: bool):
        with self.lock:
            self._state.shuffled = bool(shuffled)
            self._commit()

    def set_repeat_mode(self, mode: str):
        if mode not in REPEAT_MODES:
            raise ValueError(f'Invalid repeat mode: {mode!r}')
        with self.lock:
            self._state.repeat_mode = mode
            self._commit()
